import hashlib

import onionkit.exc as s_exc

import onionkit.lib.crypto.balloon as s_balloon

import onionkit.tests.utils as s_t_utils

def sha256(*parts):
    return hashlib.sha256(b''.join(parts)).digest()

u64 = s_balloon.u64

class BalloonTest(s_t_utils.OnionTest):

    def test_lib_crypto_balloon_expand(self):

        # with no mixing rounds the result is the last expanded block
        last = sha256(u64(0), b'hehe', b'haha')
        for cnt in range(1, 4):
            last = sha256(u64(cnt), last)

        self.eq(last, s_balloon.balloon('sha256', b'hehe', b'haha', 4, 0))

    def test_lib_crypto_balloon_mix(self):

        # a single block buffer always picks itself as the neighbor
        last = sha256(u64(0), b'hehe', b'haha')
        last = sha256(u64(1), last, last)

        cnt = 2
        for i in range(s_balloon.DELTA):
            cnt += 1
            last = sha256(u64(cnt), last, last)
            cnt += 1

        self.eq(last, s_balloon.balloon('sha256', b'hehe', b'haha', 1, 1))

    def test_lib_crypto_balloon_params(self):

        valu = s_balloon.balloon('sha256', b'hehe', b'haha', 16, 2)
        self.len(32, valu)
        self.eq(valu, s_balloon.balloon('sha256', b'hehe', b'haha', 16, 2))

        self.ne(valu, s_balloon.balloon('sha256', b'hehe', b'hoho', 16, 2))
        self.ne(valu, s_balloon.balloon('sha256', b'hoho', b'haha', 16, 2))
        self.ne(valu, s_balloon.balloon('sha256', b'hehe', b'haha', 17, 2))
        self.ne(valu, s_balloon.balloon('sha256', b'hehe', b'haha', 16, 3))

        self.len(64, s_balloon.balloon('blake2b', b'hehe', b'haha', 16, 1))

        with self.raises(s_exc.BadArg):
            s_balloon.balloon('sha256', b'hehe', b'haha', 0, 1)

        with self.raises(s_exc.BadArg):
            s_balloon.balloon('sha256', b'hehe', b'haha', 16, -1)

        with self.raises(s_exc.UnsupportedVersion):
            s_balloon.balloon('newp', b'hehe', b'haha', 16, 1)

        with self.raises(s_exc.UnsupportedVersion):
            s_balloon.balloon('shake_128', b'hehe', b'haha', 16, 1)

    def test_lib_crypto_balloon_xor(self):

        outs = [b'\x01\x02', b'\x10\x20', b'\xff\x00']
        self.eq(s_balloon.xorBytes(outs), b'\xee\x22')
        self.eq(s_balloon.xorBytes(outs[::-1]), b'\xee\x22')
        self.eq(s_balloon.xorBytes([b'\x00\x01']), b'\x00\x01')

        with self.raises(s_exc.BadArg):
            s_balloon.xorBytes([])

        with self.raises(s_exc.BadArg):
            s_balloon.xorBytes([b'\x00', b'\x00\x00'])

    async def test_lib_crypto_balloon_multi(self):

        outs = [s_balloon.balloon('sha256', b'hehe', b'haha' + u64(k), 8, 1) for k in (1, 2, 3)]
        valu = sha256(b'hehe', b'haha', s_balloon.xorBytes(outs))

        self.eq(valu, await s_balloon.balloonM('sha256', b'hehe', b'haha', 8, 1, 3))

        # a single instance still uses the extended salt and the final hash
        outs = [s_balloon.balloon('sha256', b'hehe', b'haha' + u64(1), 8, 1)]
        self.eq(sha256(b'hehe', b'haha', outs[0]), await s_balloon.balloonM('sha256', b'hehe', b'haha', 8, 1, 1))

        await self.asyncraises(s_exc.BadArg, s_balloon.balloonM('sha256', b'hehe', b'haha', 8, 1, 0))
        await self.asyncraises(s_exc.UnsupportedVersion, s_balloon.balloonM('newp', b'hehe', b'haha', 8, 1, 2))
