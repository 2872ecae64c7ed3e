'''
Passphrase based keystream derivation.

A passphrase is stretched with Balloon (BLAKE2b-512) into a 64 byte seed,
which keys a BLAKE2X style XOF personalized with a 16 byte context string.
'''
import time
import logging

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.coro as s_coro
import onionkit.lib.const as s_const
import onionkit.lib.config as s_config
import onionkit.lib.crypto.balloon as s_balloon
import onionkit.lib.crypto.blake2xb as s_blake2xb

logger = logging.getLogger(__name__)

HASH_NAME = 'blake2b'
BLOCK_SIZE = 64
PERSON_SIZE = 16

SALT_BALLOON = s_common.uhex('8e8a1b3347da2672fa404eaa7276dee3')
SALT_XOF = s_common.uhex('313e86e72658f5c7c3ad6e1c3d397062')

# onion key generation context (zero padded like any BLAKE2 personalization)
KEYGEN_PERSON = b'onionize-keygen\x00'

kdfdefs = {
    'kdf:space': {
        'description': 'The Balloon buffer size in bytes.',
        'type': 'integer',
        'minimum': BLOCK_SIZE,
        'default': 8 * s_const.mebibyte,
    },
    'kdf:time': {
        'description': 'The number of Balloon mixing rounds.',
        'type': 'integer',
        'minimum': 0,
        'default': 2,
    },
    'kdf:para': {
        'description': 'The number of Balloon instances run in parallel.',
        'type': 'integer',
        'minimum': 1,
        'default': 1,
    },
}

def getKdfConf(conf=None, envar_prefixes=('onionkit',)):
    '''
    Construct and validate the KDF configuration.

    Args:
        conf (dict): Optional explicit values, which take precedence over environment variables.
        envar_prefixes (tuple): Environment variable prefixes (``ONIONKIT_KDF_SPACE`` ...).

    Returns:
        onionkit.lib.config.Config: The validated configuration with defaults applied.
    '''
    if isinstance(conf, s_config.Config):
        conf = conf.asDict()

    schema = s_config.getJsSchema(kdfdefs, {})
    kconf = s_config.Config(schema, conf=conf, envar_prefixes=envar_prefixes)
    kconf.setConfFromEnvs()
    kconf.reqConfValid()
    return kconf

async def seed(passwd, conf=None):
    '''
    Compute the Balloon seed for a passphrase.
    '''
    if isinstance(passwd, str):
        passwd = passwd.encode('utf8')

    kconf = getKdfConf(conf)

    scost = kconf.reqConfValu('kdf:space') // BLOCK_SIZE
    tcost = kconf.reqConfValu('kdf:time')
    para = kconf.reqConfValu('kdf:para')

    tick = time.monotonic()

    if para == 1:
        byts = await s_coro.forked(s_balloon.balloon, HASH_NAME, passwd, SALT_BALLOON, scost, tcost)
    else:
        byts = await s_balloon.balloonM(HASH_NAME, passwd, SALT_BALLOON, scost, tcost, para)

    took = time.monotonic() - tick
    logger.debug(f'Balloon seed derived in {took:.3f}s (scost={scost} tcost={tcost} para={para})')

    return byts

async def keystream(passwd, person, conf=None):
    '''
    Derive a deterministic keystream from a passphrase.

    Args:
        passwd (bytes): The passphrase (str is utf8 encoded).
        person (bytes): A 16 byte context string.
        conf (dict): Optional KDF configuration values.

    Returns:
        onionkit.lib.crypto.blake2xb.Blake2xb: A reader with ``read(size)``.
    '''
    if isinstance(person, str):
        person = person.encode('utf8')

    if len(person) != PERSON_SIZE:
        raise s_exc.BadArg(mesg=f'Keystream personalization must be {PERSON_SIZE} bytes.', size=len(person))

    byts = await seed(passwd, conf=conf)

    xof = s_blake2xb.Blake2xb(salt=SALT_XOF, person=person)
    xof.update(byts)
    return xof
