'''
Test helpers for onionkit.

OnionTest is a unittest.TestCase with short assertion wrappers and helpers
for temporary directories, captured logs, environment variables and tool
entry points.  ``async def test_*`` methods are run on the global loop.
'''
import io
import os
import types
import shutil
import inspect
import logging
import tempfile
import unittest
import threading
import contextlib

import onionkit.exc as s_exc
import onionkit.glob as s_glob

import onionkit.lib.coro as s_coro
import onionkit.lib.output as s_output

logger = logging.getLogger(__name__)

class TstOutPut(s_output.OutPutStr):

    def expect(self, substr, throw=True):
        '''
        Check that a string is present in the captured output.

        Args:
            substr (str): The string to look for.
            throw (bool): Raise an OnionErr instead of returning False when it is missing.

        Returns:
            bool: True if the string is present.
        '''
        outs = str(self)
        if substr in outs:
            return True

        if throw:
            raise s_exc.OnionErr(mesg=f'TstOutPut.expect({substr}) not in {outs}')

        return False

class StreamEvent(io.StringIO, threading.Event):
    '''
    A StringIO which sets itself (as a threading.Event) when a message is written.
    '''
    def __init__(self, *args, **kwargs):
        io.StringIO.__init__(self, *args, **kwargs)
        threading.Event.__init__(self)
        self.mesg = ''

    def setMesg(self, mesg):
        self.mesg = mesg
        self.clear()

    def write(self, s):
        io.StringIO.write(self, s)
        if self.mesg and self.mesg in s:
            self.set()

class OnionTest(unittest.TestCase):
    '''
    Base class for onionkit tests.

    Note:
        Async test methods are wrapped with s_glob.synchelp when the test case is constructed.
    '''
    def __init__(self, *args, **kwargs):
        unittest.TestCase.__init__(self, *args, **kwargs)

        for name in dir(self):
            if not name.startswith('test_'):
                continue

            attr = getattr(self, name, None)
            if inspect.ismethod(attr) and inspect.iscoroutinefunction(attr):
                setattr(self, name, s_glob.synchelp(attr))

    @contextlib.contextmanager
    def getTestDir(self):
        '''
        Get a temporary directory which is removed afterwards.

        Yields:
            str: The directory path.
        '''
        tempdir = tempfile.mkdtemp()
        try:
            yield tempdir
        finally:
            shutil.rmtree(tempdir, ignore_errors=True)

    @contextlib.contextmanager
    def getLoggerStream(self, logname, mesg=''):
        '''
        Capture the messages of a logger (at DEBUG level) in a StreamEvent.

        Args:
            logname (str): Name of the logger.
            mesg (str): When given, the StreamEvent is set once a message containing it is logged.

        Examples:
            Check the warning for a skipped document::

                with self.getLoggerStream('onionkit.lib.hsdesc') as stream:
                    descs, rest = s_hsdesc.parseHsDescs(byts)

                stream.seek(0)
                self.isin('Skipping broken', stream.read())
        '''
        stream = StreamEvent()
        stream.setMesg(mesg)

        handler = logging.StreamHandler(stream)
        slogger = logging.getLogger(logname)
        level = slogger.level

        slogger.addHandler(handler)
        slogger.setLevel('DEBUG')
        try:
            yield stream
        finally:
            slogger.removeHandler(handler)
            slogger.setLevel(level)

    @contextlib.contextmanager
    def setTstEnvars(self, **props):
        '''
        Set environment variables (as strings) for the duration of the block.

        Examples:
            Run a test while a envar is set::

                with self.setTstEnvars(ONIONKIT_KDF_TIME='1'):
                    conf = s_kdf.getKdfConf()
        '''
        saved = {name: os.environ.get(name) for name in props}

        for name, valu in props.items():
            os.environ[name] = str(valu)

        try:
            yield None

        finally:
            for name, valu in saved.items():
                if valu is None:
                    os.environ.pop(name, None)
                else:
                    os.environ[name] = valu

    async def execToolMain(self, func, argv):
        '''
        Run a tool ``main(argv, outp)`` with a TstOutPut.

        Returns:
            (int, TstOutPut): The return code and the captured output.
        '''
        outp = TstOutPut()

        if inspect.iscoroutinefunction(func):
            return await func(argv, outp=outp), outp

        retn = await s_coro.executor(func, argv, outp=outp)
        return retn, outp

    def eq(self, x, y, msg=None):
        '''
        Assert X is equal to Y
        '''
        self.assertEqual(x, y, msg=msg)

    def ne(self, x, y):
        '''
        Assert X is not equal to Y
        '''
        self.assertNotEqual(x, y)

    def true(self, x, msg=None):
        self.assertTrue(x, msg=msg)

    def false(self, x, msg=None):
        self.assertFalse(x, msg=msg)

    def nn(self, x, msg=None):
        '''
        Assert X is not None
        '''
        self.assertIsNotNone(x, msg=msg)
        return x

    def none(self, x, msg=None):
        self.assertIsNone(x, msg=msg)

    def raises(self, *args, **kwargs):
        '''
        Assert a function raises an exception.
        '''
        return self.assertRaises(*args, **kwargs)

    async def asyncraises(self, exc, coro):
        with self.assertRaises(exc):
            await coro

    def isinstance(self, obj, cls, msg=None):
        self.assertIsInstance(obj, cls, msg=msg)

    def isin(self, member, container, msg=None):
        '''
        Assert a member is inside of a container.
        '''
        self.assertIn(member, container, msg=msg)

    def notin(self, member, container, msg=None):
        self.assertNotIn(member, container, msg=msg)

    def len(self, x, obj, msg=None):
        '''
        Assert that the length of an object is equal to X
        '''
        if isinstance(obj, types.GeneratorType):
            obj = list(obj)

        self.eq(x, len(obj), msg=msg)
