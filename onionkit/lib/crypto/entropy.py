import logging

import onionkit.exc as s_exc

logger = logging.getLogger(__name__)

def readRand(rand, size):
    '''
    Read exactly size bytes from an entropy source.

    Args:
        rand: An object with a ``read(size)`` method (for example a keystream).
        size (int): The number of bytes to read.

    Raises:
        KeyGenerationFailure: If the source raises or returns a short read.
    '''
    try:
        byts = rand.read(size)
    except Exception as e:
        raise s_exc.KeyGenerationFailure(mesg=f'Entropy source failed: {e}', size=size) from e

    if byts is None or len(byts) != size:
        raise s_exc.KeyGenerationFailure(mesg='Entropy source returned a short read.', size=size)

    return bytes(byts)

def randfunc(rand):
    '''
    Adapt an entropy source to the ``randfunc(size)`` calling convention.
    '''
    def func(size):
        return readRand(rand, size)
    return func
