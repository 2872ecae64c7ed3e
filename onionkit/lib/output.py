'''
Hookable output for the onionkit command line tools.
'''
import sys

class OutPut:

    def __init__(self, fd=None):
        if fd is None:
            fd = sys.stdout
        self.fd = fd

    def printf(self, mesg, addnl=True):

        if addnl:
            mesg += '\n'

        return self._rawOutPut(mesg)

    def _rawOutPut(self, mesg):
        self.fd.write(mesg)

class OutPutStr(OutPut):
    '''
    Collect printed messages in memory (used by the tool tests).
    '''
    def __init__(self):
        OutPut.__init__(self)
        self.mesgs = []

    def _rawOutPut(self, mesg):
        self.mesgs.append(mesg)

    def expect(self, substr):
        return substr in str(self)

    def __str__(self):
        return ''.join(self.mesgs)

stdout = OutPut()
stderr = OutPut(fd=sys.stderr)
