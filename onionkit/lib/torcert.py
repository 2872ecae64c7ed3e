'''
Ed25519 certificates as used in tor descriptors.

Binary layout::

    version(1) | cert-type(1) | expiration-hours(4) | cert-key-type(1)
    | certified-key(32) | n-extensions(1) | extensions | signature(64)

Each extension is ``length(2) | type(1) | flags(1) | data(length)``.  All
integers are big-endian.
'''
import copy
import struct
import logging
import datetime

import onionkit.exc as s_exc

import onionkit.lib.const as s_const
import onionkit.lib.encoding as s_encoding
import onionkit.lib.crypto.ed25519 as s_ed25519

logger = logging.getLogger(__name__)

CERT_HEADER = struct.Struct('>BBIB32sB')
EXT_HEADER = struct.Struct('>HBB')

SIG_SIZE = s_ed25519.SIG_SIZE
KEY_SIZE = s_ed25519.KEY_SIZE

CERT_VERSION = 1

# cert types
CERT_TYPE_SIGNING = 4
CERT_TYPE_LINK = 5
CERT_TYPE_AUTH = 6
CERT_TYPE_NTOR_CROSS = 7

# cert key types
KEY_TYPE_ED25519 = 1

# extension types
EXT_SIGNED_WITH_KEY = 4

EXT_FLAG_AFFECTS_VALIDATION = 0x01

PEM_NAME = 'ED25519 CERT'

def hoursToTime(hours):
    try:
        return datetime.datetime.fromtimestamp(hours * s_const.hour, tz=datetime.timezone.utc)
    except (ValueError, OverflowError, OSError):
        return datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)

class Extension:

    def __init__(self, exttype, flags, data):
        self.type = exttype
        self.flags = flags
        self.data = data

    def affectsValidation(self):
        return bool(self.flags & EXT_FLAG_AFFECTS_VALIDATION)

    def encode(self):

        if len(self.data) > 0xffff:
            raise s_exc.BadArg(mesg='Certificate extension data is too long.', size=len(self.data))

        if not 0 <= self.type <= 0xff or not 0 <= self.flags <= 0xff:
            raise s_exc.BadArg(mesg='Certificate extension type and flags must be a single byte.')

        return EXT_HEADER.pack(len(self.data), self.type, self.flags) + self.data

    def __eq__(self, othr):
        if not isinstance(othr, Extension):
            return False
        return (self.type, self.flags, self.data) == (othr.type, othr.flags, othr.data)

    def __repr__(self):
        return f'Extension(type={self.type}, flags={self.flags}, data={self.data!r})'

class Certificate:
    '''
    An Ed25519 certificate.

    Args:
        certtype (int): The certificate type.
        expiration (datetime.datetime|int): The expiration time (hour granularity, UTC), or
                                            the raw hours since the epoch.
        keytype (int): The certified key type.
        key (bytes): The 32 byte certified key.
        exts (dict): Ordered mapping of extension type to Extension.
        signature (bytes): The 64 byte signature (empty for an unsigned certificate).
        version (int): The certificate version.
        pubkeysign (bool): Whether the signature was made by the certified key
                           (the sign bit of an ``ntor-onion-key-crosscert``).

    Notes:
        ``pubkeysign`` is not part of the binary encoding and is not compared by ``==``.

        The raw expiration hours are kept, so every 32 bit value round trips even when
        it lies beyond the range of ``datetime``.
    '''
    def __init__(self, certtype, expiration, keytype, key, exts=None, signature=b'',
                 version=CERT_VERSION, pubkeysign=False):

        if exts is None:
            exts = {}

        if isinstance(expiration, int):
            self.exphours = expiration
            self._expiration = None
        else:
            if expiration.tzinfo is None:
                expiration = expiration.replace(tzinfo=datetime.timezone.utc)
            self.exphours = int(expiration.timestamp()) // s_const.hour
            self._expiration = expiration

        self.version = version
        self.certtype = certtype
        self.keytype = keytype
        self.key = key
        self.exts = exts
        self.signature = signature
        self.pubkeysign = pubkeysign

    @staticmethod
    def decode(byts):
        '''
        Decode a binary certificate.

        Raises:
            MalformedInput: If the certificate is truncated or has trailing bytes.
        '''
        minsize = CERT_HEADER.size + SIG_SIZE
        if len(byts) < minsize:
            raise s_exc.MalformedInput(mesg=f'Certificate is {len(byts)} bytes, must be at least {minsize}.',
                                       size=len(byts))

        vers, certtype, hours, keytype, key, nexts = CERT_HEADER.unpack_from(byts, 0)

        offs = CERT_HEADER.size
        sigoffs = len(byts) - SIG_SIZE

        exts = {}
        for indx in range(nexts):

            if offs + EXT_HEADER.size > sigoffs:
                raise s_exc.MalformedInput(mesg='Truncated certificate extension header.', ext=indx)

            size, exttype, flags = EXT_HEADER.unpack_from(byts, offs)
            offs += EXT_HEADER.size

            if offs + size > sigoffs:
                raise s_exc.MalformedInput(mesg='Certificate extension length exceeds the certificate.',
                                           ext=indx, size=size)

            # duplicate types collapse to the last one parsed
            exts[exttype] = Extension(exttype, flags, byts[offs:offs + size])
            offs += size

        if offs != sigoffs:
            raise s_exc.MalformedInput(mesg='Unexpected bytes between certificate extensions and signature.',
                                       size=sigoffs - offs)

        return Certificate(certtype, hours, keytype, key, exts=exts,
                           signature=byts[sigoffs:], version=vers)

    @staticmethod
    def fromPem(byts):
        name, payload, rest = s_encoding.pemdec(byts)
        if name != PEM_NAME:
            raise s_exc.MalformedInput(mesg=f'Expected an {PEM_NAME} PEM block, got {name}.', name=name)
        return Certificate.decode(payload)

    @property
    def expiration(self):
        '''
        The expiration as an aware UTC datetime.

        Notes:
            Hours past the end of year 9999 are reported as ``datetime.datetime.max``.
        '''
        if self._expiration is None:
            self._expiration = hoursToTime(self.exphours)
        return self._expiration

    def hours(self):
        return self.exphours

    def body(self):
        '''
        Get the encoded certificate without the signature (the signed content).
        '''
        if len(self.key) != KEY_SIZE:
            raise s_exc.BadArg(mesg=f'Certified key must be {KEY_SIZE} bytes.', size=len(self.key))

        if len(self.exts) > 0xff:
            raise s_exc.BadArg(mesg='Too many certificate extensions.', count=len(self.exts))

        hours = self.hours()
        if not 0 <= hours <= 0xffffffff:
            raise s_exc.BadArg(mesg='Certificate expiration is out of range.', hours=hours)

        parts = [CERT_HEADER.pack(self.version, self.certtype, hours, self.keytype, self.key, len(self.exts))]
        parts.extend(ext.encode() for ext in self.exts.values())
        return b''.join(parts)

    def encode(self):
        '''
        Encode the certificate to bytes.
        '''
        if len(self.signature) != SIG_SIZE:
            raise s_exc.BadArg(mesg=f'Certificate signature must be {SIG_SIZE} bytes.', size=len(self.signature))

        return self.body() + self.signature

    def pem(self):
        return s_encoding.pemenc(PEM_NAME, self.encode())

    def signingKey(self):
        '''
        Get the Ed25519 PubKey from the signed-with-key extension, or None.
        '''
        ext = self.exts.get(EXT_SIGNED_WITH_KEY)
        if ext is None:
            return None
        return s_ed25519.PubKey.load(ext.data)

    def certifiedKey(self):
        return s_ed25519.PubKey.load(self.key)

    def sign(self, prikey):
        '''
        Sign the certificate body.

        Args:
            prikey (onionkit.lib.crypto.ed25519.PriKey): The signing key.

        Returns:
            Certificate: A new, signed certificate. The receiver is not modified.
        '''
        cert = copy.copy(self)
        cert.exts = dict(self.exts)
        cert.signature = prikey.sign(self.body())
        return cert

    def verify(self, pubk=None):
        '''
        Verify the certificate signature.

        Args:
            pubk (onionkit.lib.crypto.ed25519.PubKey): The signing key. When omitted the
                                                       signed-with-key extension is used.

        Returns:
            bool: True if the signature is valid.
        '''
        if pubk is None:
            pubk = self.signingKey()

        if pubk is None:
            raise s_exc.BadArg(mesg='No key given and the certificate has no signed-with-key extension.')

        if len(self.signature) != SIG_SIZE:
            return False

        return pubk.verify(self.body(), self.signature)

    def isExpired(self, now=None):
        if now is None:
            now = datetime.datetime.now(tz=datetime.timezone.utc)
        return now > self.expiration

    def __eq__(self, othr):
        if not isinstance(othr, Certificate):
            return False
        return (self.version == othr.version and
                self.certtype == othr.certtype and
                self.hours() == othr.hours() and
                self.keytype == othr.keytype and
                self.key == othr.key and
                list(self.exts.items()) == list(othr.exts.items()) and
                self.signature == othr.signature)

    def __repr__(self):
        return (f'Certificate(version={self.version}, certtype={self.certtype}, '
                f'expiration={self.expiration.isoformat()}, exts={list(self.exts.keys())})')
