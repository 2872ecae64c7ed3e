'''
Onion service keys and addresses.

A v2 address is the base32 encoded first 10 bytes of the SHA1 of the PKCS#1
DER encoded RSA-1024 public key.  A v3 address is the base32 encoding of the
Ed25519 public key, a two byte checksum and the version byte 3.
'''
import hmac
import logging

import cryptography.hazmat.primitives.serialization as c_ser
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa
import cryptography.hazmat.primitives.asymmetric.ed25519 as c_ed25519

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.encoding as s_encoding
import onionkit.lib.crypto.rsa as s_rsa
import onionkit.lib.crypto.ed25519 as s_ed25519

logger = logging.getLogger(__name__)

V2_ADDR_SIZE = 10
V2_ADDR_LEN = 16

V3_VERSION = b'\x03'
V3_CHECKSUM_SIZE = 2
V3_ADDR_SIZE = s_ed25519.KEY_SIZE + V3_CHECKSUM_SIZE + len(V3_VERSION)
V3_ADDR_LEN = 56

CHECKSUM_PREFIX = b'.onion checksum'

keygens = {
    '2': s_rsa.PriKey.generate,
    'current': s_rsa.PriKey.generate,
    '3': s_ed25519.PriKey.generate,
    'best': s_ed25519.PriKey.generate,
}

def genOnionKey(rand, vers):
    '''
    Generate an onion service private key.

    Args:
        rand: An entropy source with a ``read(size)`` method, or None for the OS CSPRNG.
        vers (str): One of ``2``, ``current`` (RSA-1024) or ``3``, ``best`` (Ed25519).

    Returns:
        The generated ``PriKey`` (RSA or Ed25519).

    Raises:
        UnsupportedVersion: For an unrecognized version string.
        KeyGenerationFailure: If the entropy source fails.
    '''
    func = keygens.get(vers)
    if func is None:
        raise s_exc.UnsupportedVersion(mesg=f'Unrecognized onion address version: {vers!r}',
                                       vers=vers, knowns=tuple(keygens.keys()))
    return func(rand)

def permanentId(pubk):
    '''
    Get the 10 byte permanent id (SHA1 of the DER public key, truncated) of an RSA key.
    '''
    if isinstance(pubk, s_rsa.PriKey):
        pubk = pubk.publ
    return s_encoding.sha1(pubk.dump())[:V2_ADDR_SIZE]

def checksumV3(pk):
    return s_encoding.sha3_256(CHECKSUM_PREFIX + pk + V3_VERSION)[:V3_CHECKSUM_SIZE]

def onionAddrV2(pubk):
    return s_encoding.b32enc(permanentId(pubk))

def onionAddrV3(pubk):
    pk = pubk.dump()
    return s_encoding.b32enc(pk + checksumV3(pk) + V3_VERSION)

def onionAddr(key):
    '''
    Get the onion address (without the .onion suffix) for a key.

    Args:
        key: An RSA or Ed25519 PriKey or PubKey.

    Returns:
        str: The 16 (v2) or 56 (v3) character lower case address.
    '''
    if isinstance(key, (s_rsa.PriKey, s_ed25519.PriKey)):
        key = key.publ

    if isinstance(key, s_rsa.PubKey):
        return onionAddrV2(key)

    if isinstance(key, s_ed25519.PubKey):
        return onionAddrV3(key)

    raise s_exc.BadArg(mesg=f'Unrecognized onion key type: {type(key).__name__}')

def getOnionPubKeyV3(addr):
    '''
    Extract the Ed25519 public key from a v3 onion address.

    Raises:
        MalformedInput: If the address is not base32 or has the wrong length.
        UnsupportedVersion: If the version byte is not 3.
        VerificationFailure: If the checksum does not match.
    '''
    byts = s_encoding.b32dec(addr)
    if len(byts) != V3_ADDR_SIZE:
        raise s_exc.MalformedInput(mesg='Wrong v3 onion address length.', size=len(byts))

    pk = byts[:s_ed25519.KEY_SIZE]
    chksum = byts[s_ed25519.KEY_SIZE:s_ed25519.KEY_SIZE + V3_CHECKSUM_SIZE]
    vers = byts[s_ed25519.KEY_SIZE + V3_CHECKSUM_SIZE:]

    if vers != V3_VERSION:
        raise s_exc.UnsupportedVersion(mesg='Invalid v3 onion address version byte.', vers=vers[0])

    if not hmac.compare_digest(chksum, checksumV3(pk)):
        raise s_exc.VerificationFailure(mesg='Invalid v3 onion address checksum.')

    return s_ed25519.PubKey.load(pk)

def isOnionAddrV2(addr):
    try:
        return len(s_encoding.b32dec(addr)) == V2_ADDR_SIZE
    except s_exc.MalformedInput:
        return False

def isOnionAddrV3(addr):
    try:
        getOnionPubKeyV3(addr)
        return True
    except s_exc.OnionErr:
        return False

def isOnionAddr(addr):
    '''
    Check whether a string is a valid v2 or v3 onion address.
    '''
    return isOnionAddrV2(addr) or isOnionAddrV3(addr)

def loadOnionKey(byts):
    '''
    Load an onion service private key from PEM bytes.

    Notes:
        Both the tor v2 ``private_key`` format (``RSA PRIVATE KEY``) and
        PKCS#8 ``PRIVATE KEY`` blocks (RSA or Ed25519) are supported.
    '''
    name, payload, rest = s_encoding.pemdec(byts.lstrip())

    if name == 'RSA PRIVATE KEY':
        return s_rsa.PriKey.load(payload)

    if name != 'PRIVATE KEY':
        raise s_exc.MalformedInput(mesg=f'Unrecognized PEM block type: {name}', name=name)

    try:
        priv = c_ser.load_der_private_key(payload, password=None)
    except ValueError as e:
        raise s_exc.MalformedInput(mesg=f'Invalid PKCS#8 private key: {e}') from None

    if isinstance(priv, c_ed25519.Ed25519PrivateKey):
        return s_ed25519.PriKey(priv)

    if isinstance(priv, c_rsa.RSAPrivateKey):
        return s_rsa.PriKey(priv)

    raise s_exc.UnsupportedVersion(mesg=f'Unsupported onion key type: {type(priv).__name__}')

def loadOnionKeyFile(*paths):
    byts = s_common.reqbytes(*paths)
    return loadOnionKey(byts)

def saveOnionKey(prik, *paths):
    '''
    Serialize an onion service private key to PEM.

    Args:
        prik: An RSA or Ed25519 PriKey.
        *paths: Optional path elements to save the PEM to.

    Returns:
        bytes: The PEM bytes.
    '''
    if isinstance(prik, (s_rsa.PriKey, s_ed25519.PriKey)):
        byts = prik.pem()
    else:
        raise s_exc.BadArg(mesg=f'Unrecognized onion key type: {type(prik).__name__}')

    if paths:
        with s_common.genfile(*paths) as fd:
            fd.truncate(0)
            fd.write(byts)
        logger.info('Saved onion key for %s to %s', onionAddr(prik), s_common.genpath(*paths))

    return byts
