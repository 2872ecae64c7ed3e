import logging

import cryptography.hazmat.primitives.serialization as c_ser
import cryptography.hazmat.primitives.asymmetric.ed25519 as c_ed25519

from cryptography.exceptions import InvalidSignature

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.crypto.entropy as s_entropy

logger = logging.getLogger(__name__)

KEY_SIZE = 32
SIG_SIZE = 64

class PriKey:
    '''
    A helper class for using Ed25519 private keys.
    '''
    def __init__(self, priv):
        self.priv = priv  # type: c_ed25519.Ed25519PrivateKey
        self.publ = self.public()

    def iden(self):
        '''
        Return the hex encoded public key bytes.
        '''
        return self.publ.iden()

    def sign(self, byts):
        '''
        Compute the Ed25519 signature for the given bytes.

        Returns:
            bytes: The 64 byte signature.
        '''
        return self.priv.sign(byts)

    def public(self):
        '''
        Get the PubKey which corresponds to the Ed25519 PriKey.
        '''
        return PubKey(self.priv.public_key())

    def seed(self):
        '''
        Get the 32 byte private key seed.
        '''
        return self.priv.private_bytes(
            encoding=c_ser.Encoding.Raw,
            format=c_ser.PrivateFormat.Raw,
            encryption_algorithm=c_ser.NoEncryption())

    @staticmethod
    def generate(rand=None):
        '''
        Generate a new Ed25519 PriKey.

        Args:
            rand: Optional entropy source with a ``read(size)`` method.
                  The first 32 bytes read are used as the seed.

        Returns:
            PriKey: A new PriKey instance.
        '''
        if rand is None:
            return PriKey(c_ed25519.Ed25519PrivateKey.generate())

        seed = s_entropy.readRand(rand, KEY_SIZE)
        return PriKey(c_ed25519.Ed25519PrivateKey.from_private_bytes(seed))

    def dump(self):
        '''
        Get the private key bytes in DER/PKCS8 format.
        '''
        return self.priv.private_bytes(
            encoding=c_ser.Encoding.DER,
            format=c_ser.PrivateFormat.PKCS8,
            encryption_algorithm=c_ser.NoEncryption())

    def pem(self):
        return self.priv.private_bytes(
            encoding=c_ser.Encoding.PEM,
            format=c_ser.PrivateFormat.PKCS8,
            encryption_algorithm=c_ser.NoEncryption())

    @staticmethod
    def load(byts):
        '''
        Create a PriKey instance from DER/PKCS8 encoded bytes.
        '''
        try:
            priv = c_ser.load_der_private_key(byts, password=None)
        except ValueError as e:
            raise s_exc.MalformedInput(mesg=f'Invalid Ed25519 private key: {e}') from None

        if not isinstance(priv, c_ed25519.Ed25519PrivateKey):
            raise s_exc.MalformedInput(mesg='DER private key is not an Ed25519 key.')

        return PriKey(priv)

    @staticmethod
    def fromSeed(seed):
        if len(seed) != KEY_SIZE:
            raise s_exc.BadArg(mesg=f'Ed25519 seed must be {KEY_SIZE} bytes.', size=len(seed))
        return PriKey(c_ed25519.Ed25519PrivateKey.from_private_bytes(seed))

class PubKey:
    '''
    A helper class for using Ed25519 public keys.
    '''
    def __init__(self, publ):
        self.publ = publ  # type: c_ed25519.Ed25519PublicKey

    def dump(self):
        '''
        Get the raw 32 byte public key.
        '''
        return self.publ.public_bytes(
            encoding=c_ser.Encoding.Raw,
            format=c_ser.PublicFormat.Raw)

    def verify(self, byts, sign):
        '''
        Verify the signature for the given bytes.

        Returns:
            bool: True if the data was verified, False otherwise.
        '''
        try:
            self.publ.verify(sign, byts)
            return True
        except InvalidSignature:
            return False

    def iden(self):
        return s_common.ehex(self.dump())

    def __eq__(self, othr):
        if not isinstance(othr, PubKey):
            return False
        return self.dump() == othr.dump()

    def __hash__(self):
        return hash(self.dump())

    @staticmethod
    def load(byts):
        '''
        Create a PubKey instance from the raw 32 byte public key.
        '''
        if len(byts) != KEY_SIZE:
            raise s_exc.MalformedInput(mesg=f'Ed25519 public key must be {KEY_SIZE} bytes.', size=len(byts))

        try:
            return PubKey(c_ed25519.Ed25519PublicKey.from_public_bytes(byts))
        except ValueError as e:
            raise s_exc.MalformedInput(mesg=f'Invalid Ed25519 public key: {e}') from None
