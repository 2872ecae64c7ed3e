'''
A process wide event loop running in a daemon thread.

The test helpers use it to run ``async def test_*`` methods from the
synchronous unittest runner.
'''
import asyncio
import functools
import threading

_glob_loop = None
_glob_thrd = None
_glob_lock = threading.Lock()

def initloop():
    '''
    Get the global loop, adopting the running loop or starting a loop thread.
    '''
    global _glob_loop
    global _glob_thrd

    with _glob_lock:

        if _glob_loop is not None:
            return _glob_loop

        try:
            _glob_loop = asyncio.get_running_loop()
            _glob_thrd = threading.current_thread()

        except RuntimeError:
            _glob_loop = asyncio.new_event_loop()
            _glob_thrd = threading.Thread(target=_glob_loop.run_forever, name='onionkit-loop', daemon=True)
            _glob_thrd.start()

        return _glob_loop

def iAmLoop():
    initloop()
    return threading.current_thread() is _glob_thrd

def sync(coro, timeout=None):
    '''
    Run a coroutine on the global loop from another thread and return its result.
    '''
    loop = initloop()
    return asyncio.run_coroutine_threadsafe(coro, loop).result(timeout)

def synchelp(f):
    '''
    Wrap a coroutine function so that callers outside the global loop get
    the result and callers on the loop get an awaitable.
    '''
    @functools.wraps(f)
    def wrap(*args, **kwargs):

        coro = f(*args, **kwargs)

        if not iAmLoop():
            return sync(coro)

        return coro

    return wrap
