'''
Exceptions used by onionkit, all inheriting from OnionErr
'''

class OnionErr(Exception):

    def __init__(self, *args, **info):
        self.errinfo = info
        self.errname = self.__class__.__name__
        Exception.__init__(self, self._getExcMsg())

    def _getExcMsg(self):
        props = sorted(self.errinfo.items())
        displ = ' '.join(['%s=%r' % (p, v) for (p, v) in props])
        return '%s: %s' % (self.__class__.__name__, displ)

    def _setExcMesg(self):
        '''Should be called when self.errinfo is modified.'''
        self.args = (self._getExcMsg(),)

    def __setstate__(self, state):
        '''Pickle support.'''
        super(OnionErr, self).__setstate__(state)
        self._setExcMesg()

    def items(self):
        return {k: v for k, v in self.errinfo.items()}

    def get(self, name, defv=None):
        '''
        Return a value from the errinfo dict.

        Example:

            try:
                foothing()
            except OnionErr as e:
                blah = e.get('blah')

        '''
        return self.errinfo.get(name, defv)

    def set(self, name, valu):
        '''
        Set a value in the errinfo dict.
        '''
        self.errinfo[name] = valu
        self._setExcMesg()

    def setdefault(self, name, valu):
        '''
        Set a value in errinfo dict if it is not already set.
        '''
        if name in self.errinfo:
            return
        self.errinfo[name] = valu
        self._setExcMesg()

    def update(self, items: dict):
        '''Update multiple items in the errinfo dict at once.'''
        self.errinfo.update(items)
        self._setExcMesg()

class BadArg(OnionErr):
    ''' Improper function arguments '''
    pass

class BadState(OnionErr): pass

class BadConfValu(OnionErr):
    '''
    The configuration value provided is not valid.

    This should contain the config name, valu and mesg.
    '''
    pass

class NeedConfValu(OnionErr): pass

class SchemaViolation(OnionErr): pass

class CryptoErr(OnionErr):
    '''
    Raised when there is an onionkit.lib.crypto error.
    '''
    pass

class MalformedInput(OnionErr):
    '''
    Truncated or structurally invalid document, certificate or encoding.
    '''
    pass

class FieldConstraintViolation(OnionErr):
    '''
    A required document field is missing or a multiplicity rule is broken.
    '''
    pass

class UnsupportedVersion(OnionErr):
    '''
    Unknown address, key or hash version token.
    '''
    pass

class VerificationFailure(CryptoErr):
    '''
    Signature, checksum or crosscert mismatch.
    '''
    pass

class KeyGenerationFailure(CryptoErr):
    '''
    The entropy source was exhausted or returned an error.
    '''
    pass

class XofLengthExceeded(CryptoErr):
    '''
    More output was requested from an XOF than its configured length.
    '''
    pass

class SpawnExit(OnionErr): pass

class NoSuchFile(OnionErr): pass

class NoSuchEncoder(OnionErr): pass
class NoSuchDecoder(OnionErr): pass
