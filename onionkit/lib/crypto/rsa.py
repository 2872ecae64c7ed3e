import hmac
import math
import logging
import secrets

import Crypto.PublicKey.RSA as p_rsa

import cryptography.hazmat.primitives.serialization as c_ser
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa
import cryptography.hazmat.primitives.asymmetric.padding as c_padding

from cryptography.exceptions import InvalidSignature

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.encoding as s_encoding
import onionkit.lib.crypto.entropy as s_entropy

logger = logging.getLogger(__name__)

KEY_BITS = 1024
PUBLIC_EXPONENT = 65537

def _rawsign(priv, byts):
    '''
    PKCS#1 v1.5 type 1 padding directly over the data (no DigestInfo).

    Notes:
        The private operation uses CRT and is blinded with a fresh random
        value per signature.
    '''
    nums = priv.private_numbers()
    publ = nums.public_numbers
    modn = publ.n
    size = (modn.bit_length() + 7) // 8

    if len(byts) > size - 11:
        raise s_exc.BadArg(mesg='Data is too long for a raw PKCS#1 v1.5 signature.', size=len(byts))

    encm = b'\x00\x01' + b'\xff' * (size - 3 - len(byts)) + b'\x00' + byts

    while True:
        blind = secrets.randbelow(modn - 2) + 2
        if math.gcd(blind, modn) == 1:
            break

    mesg = (int.from_bytes(encm, 'big') * pow(blind, publ.e, modn)) % modn

    sigp = pow(mesg % nums.p, nums.dmp1, nums.p)
    sigq = pow(mesg % nums.q, nums.dmq1, nums.q)
    sigi = sigq + nums.q * ((nums.iqmp * (sigp - sigq)) % nums.p)

    sigi = (sigi * pow(blind, -1, modn)) % modn
    return sigi.to_bytes(size, 'big')

class PriKey:
    '''
    A helper class for using RSA private keys.

    Signing methods use raw PKCS#1 v1.5 padding over the given bytes, which
    is how tor signs descriptor digests and crosscerts.
    '''
    def __init__(self, priv):
        self.priv = priv  # type: c_rsa.RSAPrivateKey
        self.publ = self.public()

    def iden(self):
        '''
        Return the hex SHA1 hash of the PKCS#1 DER public key.
        '''
        return self.publ.iden()

    def sign(self, byts):
        '''
        Compute a raw PKCS#1 v1.5 signature for the given bytes.

        Args:
            byts (bytes): The bytes to sign (usually a digest).

        Returns:
            bytes: The RSA signature bytes.
        '''
        return _rawsign(self.priv, byts)

    def public(self):
        '''
        Get the PubKey which corresponds to the RSA PriKey.

        Returns:
            PubKey: A new PubKey object whose key corresponds to the private key.
        '''
        return PubKey(self.priv.public_key())

    @staticmethod
    def generate(rand=None, bits=KEY_BITS):
        '''
        Generate a new RSA PriKey.

        Args:
            rand: Optional entropy source with a ``read(size)`` method.
            bits (int): The modulus size.

        Notes:
            When an entropy source is given the key is derived from it
            deterministically.

        Returns:
            PriKey: A new PriKey instance.
        '''
        if rand is None:
            return PriKey(c_rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=bits))

        pkey = p_rsa.generate(bits, randfunc=s_entropy.randfunc(rand), e=PUBLIC_EXPONENT)
        return PriKey.load(pkey.export_key('DER', pkcs=1))

    def dump(self):
        '''
        Get the private key bytes in DER/PKCS#1 format.
        '''
        return self.priv.private_bytes(
            encoding=c_ser.Encoding.DER,
            format=c_ser.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=c_ser.NoEncryption())

    def pem(self):
        '''
        Get the private key as an ``RSA PRIVATE KEY`` PEM block.
        '''
        return s_encoding.pemenc('RSA PRIVATE KEY', self.dump())

    @staticmethod
    def load(byts):
        '''
        Create a PriKey instance from DER (PKCS#1 or PKCS#8) encoded bytes.
        '''
        try:
            priv = c_ser.load_der_private_key(byts, password=None)
        except ValueError as e:
            raise s_exc.MalformedInput(mesg=f'Invalid RSA private key: {e}') from None

        if not isinstance(priv, c_rsa.RSAPrivateKey):
            raise s_exc.MalformedInput(mesg='DER private key is not an RSA key.')

        return PriKey(priv)

class PubKey:
    '''
    A helper class for using RSA public keys.
    '''

    def __init__(self, publ):
        self.publ = publ  # type: c_rsa.RSAPublicKey

    def dump(self):
        '''
        Get the public key bytes in DER/PKCS#1 format.

        Returns:
            bytes: The DER/PKCS#1 encoded public key.
        '''
        return self.publ.public_bytes(
            encoding=c_ser.Encoding.DER,
            format=c_ser.PublicFormat.PKCS1)

    def pem(self):
        return s_encoding.pemenc('RSA PUBLIC KEY', self.dump())

    def verify(self, byts, sign):
        '''
        Verify a raw PKCS#1 v1.5 signature for the given bytes.

        Args:
            byts (bytes): The data bytes.
            sign (bytes): The signature bytes.

        Returns:
            bool: True if the data was verified, False otherwise.
        '''
        try:
            data = self.publ.recover_data_from_signature(sign, c_padding.PKCS1v15(), None)
        except (InvalidSignature, ValueError):
            return False

        return hmac.compare_digest(data, byts)

    def iden(self):
        '''
        Return the hex SHA1 hash of the PKCS#1 DER public key.
        '''
        return s_common.ehex(s_encoding.sha1(self.dump()))

    def __eq__(self, othr):
        if not isinstance(othr, PubKey):
            return False
        return self.dump() == othr.dump()

    def __hash__(self):
        return hash(self.dump())

    @staticmethod
    def load(byts):
        '''
        Create a PubKey instance from DER (PKCS#1 or SubjectPublicKeyInfo) encoded bytes.
        '''
        try:
            publ = c_ser.load_der_public_key(byts)
        except ValueError as e:
            raise s_exc.MalformedInput(mesg=f'Invalid RSA public key: {e}') from None

        if not isinstance(publ, c_rsa.RSAPublicKey):
            raise s_exc.MalformedInput(mesg='DER public key is not an RSA key.')

        return PubKey(publ)
