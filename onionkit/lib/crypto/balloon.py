'''
Balloon memory-hard hashing.

The construction fills a buffer of ``scost`` digest sized blocks from the
passphrase and salt, then mixes it ``tcost`` times with three pseudo-random
neighbor lookups per block.  ``balloonM`` runs several independent instances
in the shared forked process pool and folds their outputs together.
'''
import struct
import asyncio
import hashlib
import logging

import onionkit.exc as s_exc

import onionkit.lib.coro as s_coro

logger = logging.getLogger(__name__)

DELTA = 3

u64 = struct.Struct('>Q').pack

def getHashFunc(hashname):
    '''
    Get a function which returns the digest of the concatenation of its arguments.

    Args:
        hashname (str): A hashlib algorithm name (for example ``blake2b``).

    Raises:
        UnsupportedVersion: If the algorithm is unknown or has a variable output size.
    '''
    try:
        size = hashlib.new(hashname).digest_size
    except (ValueError, TypeError):
        raise s_exc.UnsupportedVersion(mesg=f'Unknown hash algorithm: {hashname}', name=hashname) from None

    if not size:
        raise s_exc.UnsupportedVersion(mesg=f'Variable length hash is not supported: {hashname}', name=hashname)

    def hfunc(*parts):
        h = hashlib.new(hashname)
        for byts in parts:
            h.update(byts)
        return h.digest()

    return hfunc

def balloon(hashname, passwd, salt, scost, tcost):
    '''
    Compute the Balloon hash of a passphrase.

    Args:
        hashname (str): The hashlib algorithm used for every block.
        passwd (bytes): The passphrase.
        salt (bytes): The salt.
        scost (int): Space cost, in digest sized blocks.
        tcost (int): Time cost, in mixing rounds.

    Returns:
        bytes: The last computed block.
    '''
    if scost < 1:
        raise s_exc.BadArg(mesg='Balloon space cost must be at least one block.', scost=scost)

    if tcost < 0:
        raise s_exc.BadArg(mesg='Balloon time cost must not be negative.', tcost=tcost)

    hfunc = getHashFunc(hashname)

    cnt = 0
    blocks = [None] * scost

    # expand
    last = hfunc(u64(cnt), passwd, salt)
    cnt += 1
    blocks[0] = last

    for m in range(1, scost):
        last = hfunc(u64(cnt), last)
        cnt += 1
        blocks[m] = last

    # mix
    for t in range(tcost):

        for m in range(scost):

            last = hfunc(u64(cnt), last, blocks[m])
            cnt += 1
            blocks[m] = last

            for i in range(DELTA):

                idxb = hfunc(u64(cnt), salt, u64(t), u64(m), u64(i))
                cnt += 1

                other = int.from_bytes(idxb, 'big') % scost

                last = hfunc(u64(cnt), last, blocks[other])
                cnt += 1
                blocks[m] = last

    return last

def xorBytes(outs):
    '''
    XOR fold a list of equal length byte strings.
    '''
    if not outs:
        raise s_exc.BadArg(mesg='xorBytes requires at least one value.')

    size = len(outs[0])

    valu = 0
    for byts in outs:
        if len(byts) != size:
            raise s_exc.BadArg(mesg='xorBytes values must be the same length.')
        valu ^= int.from_bytes(byts, 'big')

    return valu.to_bytes(size, 'big')

def finalHash(hashname, passwd, salt, byts):
    return getHashFunc(hashname)(passwd, salt, byts)

async def balloonM(hashname, passwd, salt, scost, tcost, para):
    '''
    Run ``para`` Balloon instances concurrently and combine them.

    Instance ``k`` (counting from 1) uses the salt extended with ``k`` as a
    64 bit big-endian integer.  The outputs are XOR folded and hashed with
    the passphrase and the original salt.

    Returns:
        bytes: The combined hash.
    '''
    if para < 1:
        raise s_exc.BadArg(mesg='Balloon parallelism must be at least 1.', para=para)

    # fail early rather than in every worker
    getHashFunc(hashname)

    logger.debug(f'Running {para} balloon instances (scost={scost} tcost={tcost})')

    todo = [s_coro.forked(balloon, hashname, passwd, salt + u64(k), scost, tcost) for k in range(1, para + 1)]
    outs = await asyncio.gather(*todo)

    return finalHash(hashname, passwd, salt, xorBytes(outs))
