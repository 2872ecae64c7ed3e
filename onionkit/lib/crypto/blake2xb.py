'''
A BLAKE2X style extendable output function built on hashlib.blake2b.

The root hash is BLAKE2b-512 with the XOF length carried in the upper half of
the node offset.  Each 64 byte output block is an independent BLAKE2b of the
root digest with the block index in the lower half of the node offset.
hashlib does not allow a tree depth of 0, so output blocks are computed with
depth 1.
'''
import hashlib
import logging

import onionkit.exc as s_exc

logger = logging.getLogger(__name__)

BLOCK_SIZE = 64
UNKNOWN_LENGTH = 0xffffffff

class Blake2xb:
    '''
    Streaming XOF reader.

    Args:
        xoflen (int): Total output length in bytes (0 for unknown length).
        key (bytes): Optional key (up to 64 bytes) for the root hash.
        salt (bytes): Optional salt (up to 16 bytes).
        person (bytes): Optional personalization (up to 16 bytes).

    Notes:
        Input is absorbed with ``update()``.  The first ``read()`` finalizes
        the root hash, after which ``update()`` raises ``BadState``.
    '''
    def __init__(self, xoflen=0, key=None, salt=None, person=None):

        if xoflen == 0:
            xoflen = UNKNOWN_LENGTH

        if not 0 < xoflen <= UNKNOWN_LENGTH:
            raise s_exc.BadArg(mesg=f'Invalid XOF length: {xoflen}', xoflen=xoflen)

        self.xoflen = xoflen
        self.salt = salt or b''
        self.person = person or b''

        try:
            self._root = hashlib.blake2b(digest_size=BLOCK_SIZE, key=key or b'',
                                         salt=self.salt, person=self.person,
                                         fanout=1, depth=1, leaf_size=0,
                                         node_offset=xoflen << 32, node_depth=0,
                                         inner_size=0)
        except (ValueError, OverflowError) as e:
            raise s_exc.BadArg(mesg=f'Invalid BLAKE2X parameters: {e}') from None

        self._h0 = None
        self._buf = b''
        self._index = 0
        self._remaining = xoflen

    def update(self, byts):
        if self._h0 is not None:
            raise s_exc.BadState(mesg='Cannot update a BLAKE2X XOF after reading from it.')
        self._root.update(byts)

    def remaining(self):
        return self._remaining

    def _block(self, h0, indx):
        size = min(BLOCK_SIZE, self.xoflen - BLOCK_SIZE * indx)
        return hashlib.blake2b(h0, digest_size=size,
                               salt=self.salt, person=self.person,
                               fanout=0, depth=1, leaf_size=BLOCK_SIZE,
                               node_offset=indx | (self.xoflen << 32), node_depth=0,
                               inner_size=BLOCK_SIZE).digest()

    def read(self, size):
        '''
        Read the next ``size`` bytes of output.

        Raises:
            XofLengthExceeded: If fewer than ``size`` bytes of output remain.
                               Nothing is consumed in that case.
        '''
        if size < 0:
            raise s_exc.BadArg(mesg='XOF read size must not be negative.', size=size)

        if size > self._remaining:
            raise s_exc.XofLengthExceeded(mesg='Requested more output than the XOF length allows.',
                                          size=size, remaining=self._remaining)

        if self._h0 is None:
            self._h0 = self._root.digest()

        outp = bytearray()
        while len(outp) < size:

            if not self._buf:
                self._buf = self._block(self._h0, self._index)
                self._index += 1

            take = min(size - len(outp), len(self._buf))
            outp += self._buf[:take]
            self._buf = self._buf[take:]

        self._remaining -= size
        return bytes(outp)

    def digest(self):
        '''
        Return the complete output for a known XOF length.
        '''
        if self.xoflen == UNKNOWN_LENGTH:
            raise s_exc.BadState(mesg='Cannot compute the digest of an unknown length XOF.')

        h0 = self._root.digest()
        count = (self.xoflen + BLOCK_SIZE - 1) // BLOCK_SIZE
        return b''.join(self._block(h0, i) for i in range(count))
