'''
Helpers for moving blocking or CPU bound work (Balloon hashing, RSA key
generation) off of the event loop.
'''
import os
import queue
import atexit
import asyncio
import logging
import multiprocessing
import concurrent.futures

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.logging as s_logging

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4

def executor(func, *args, **kwargs):
    '''
    Execute a non-coroutine function in the default thread pool of the running loop.

    Examples:

        Derive a key without blocking the loop::

            prik = await s_coro.executor(s_onion.genOnionKey, rand, '3')

    Returns:
        asyncio.Future: An asyncio future.
    '''
    def real():
        return func(*args, **kwargs)

    return asyncio.get_running_loop().run_in_executor(None, real)

def _exectodo(que, todo, logconf):

    if logconf:
        s_logging.setup(**logconf)

    func, args, kwargs = todo
    try:
        que.put(func(*args, **kwargs))

    except Exception as e:
        logger.exception(f'Error executing spawn function {func}')

        # exceptions could be non-pickleable so wrap in OnionErr
        if not isinstance(e, s_exc.OnionErr):
            name, info = s_common.err(e)
            e = s_exc.OnionErr(mesg=f'Error executing spawn function: {name}: {info.get("mesg")}',
                               name=name, info=info)

        que.put(e)

async def spawn(todo, timeout=None, ctx=None, log_conf=None):
    '''
    Run a todo (func, args, kwargs) tuple in a new process.

    Args:
        todo (tuple): A tuple of function, ``*args``, and ``**kwargs``.
        timeout (int): The timeout to wait for the todo function to finish.
        ctx (multiprocessing.context.BaseContext): An optional multiprocessing context.
        log_conf (dict): An optional logging configuration for the new process.

    Notes:
        The todo tuple must be pickleable, so locally bound functions can not be spawned.

    Raises:
        SpawnExit: If the process exits without returning a result.
    '''
    if ctx is None:
        ctx = multiprocessing.get_context('spawn')

    que = ctx.Queue()
    proc = ctx.Process(target=_exectodo, args=(que, todo, log_conf or {}))

    def execspawn():

        proc.start()

        while True:
            try:
                retn = que.get(timeout=1)
            except queue.Empty:
                if proc.is_alive():
                    continue
                proc.join()
                raise s_exc.SpawnExit(mesg=f'Spawned process exited for {todo[0]} without a result.',
                                      code=proc.exitcode)

            proc.join()
            return retn

    try:
        retn = await asyncio.wait_for(executor(execspawn), timeout=timeout)

    except (asyncio.CancelledError, asyncio.TimeoutError):
        proc.terminate()
        raise

    if isinstance(retn, Exception):
        raise retn

    return retn

_forkpool = None
_forkfail = False

def getForkPool():
    '''
    Get the shared forkserver process pool, creating it on first use.

    Notes:
        ``ONIONKIT_FORKED_WORKERS`` sets the pool size.  Only the main process
        creates a pool; None is returned when there is no pool to use.
    '''
    global _forkpool, _forkfail

    if _forkpool is not None or _forkfail:
        return _forkpool

    if multiprocessing.current_process().name != 'MainProcess':
        return None

    workers = int(os.getenv('ONIONKIT_FORKED_WORKERS', 0)) or max(DEFAULT_WORKERS, os.cpu_count() or 0)

    try:
        mpctx = multiprocessing.get_context('forkserver')
        _forkpool = concurrent.futures.ProcessPoolExecutor(mp_context=mpctx, max_workers=workers)
    except (OSError, ValueError) as e:  # pragma: no cover
        _forkfail = True
        logger.warning(f'Failed to init forkserver pool, spawn fallback enabled: {e}')
        return None

    atexit.register(_forkpool.shutdown)
    return _forkpool

def _runtodo(todo):
    return todo[0](*todo[1], **todo[2])

async def forked(func, *args, **kwargs):
    '''
    Execute a function in the shared forkserver pool, falling back to a
    spawned process when the pool is unavailable or broken.

    Returns:
        The function return value.
    '''
    todo = (func, args, kwargs)

    pool = getForkPool()
    if pool is not None:
        try:
            return await asyncio.get_running_loop().run_in_executor(pool, _runtodo, todo)
        except concurrent.futures.process.BrokenProcessPool:  # pragma: no cover
            logger.exception(f'Shared forkserver pool is broken, spawn fallback enabled: {func}')

    logger.debug(f'Running {func} with spawn fallback.')
    return await spawn(todo, log_conf=s_logging.getLogConf())
