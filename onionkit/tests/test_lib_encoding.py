import onionkit.exc as s_exc

import onionkit.lib.encoding as s_encoding

import onionkit.tests.utils as s_t_utils

class EncTest(s_t_utils.OnionTest):

    def test_lib_encoding_en(self):
        self.eq(s_encoding.encode('base64', b'visi'), b'dmlzaQ==')
        self.eq(s_encoding.encode('utf8,base64', 'visi'), b'dmlzaQ==')
        self.eq(s_encoding.encode('hex', b'\x01\xff'), '01ff')
        self.eq(s_encoding.encode('base32', b'hi'), 'nbuq====')

        with self.raises(s_exc.NoSuchEncoder):
            s_encoding.encode('newp', b'visi')

    def test_lib_encoding_de(self):
        self.eq(s_encoding.decode('base64', b'dmlzaQ=='), b'visi')
        self.eq(s_encoding.decode('base64,utf8', b'dmlzaQ=='), 'visi')
        self.eq(s_encoding.decode('+utf8,base64,utf8', 'dmlzaQ=='), 'visi')
        self.eq(s_encoding.decode('base64', 'dmlzaQ', pad=True), 'visi')
        self.eq(s_encoding.decode('base32', 'NBUQ===='), b'hi')
        self.eq(s_encoding.decode('hex', '01ff'), b'\x01\xff')

        with self.raises(s_exc.NoSuchDecoder):
            s_encoding.decode('newp', b'visi')

        with self.raises(s_exc.MalformedInput):
            s_encoding.decode('hex', 'zz')

    def test_lib_encoding_base32(self):
        self.eq(s_encoding.b32enc(b'\x00' * 10), 'aaaaaaaaaaaaaaaa')
        self.eq(s_encoding.b32dec('AAAAAAAAAAAAAAAA'), b'\x00' * 10)
        self.eq(s_encoding.b32dec(b'aaaaaaaaaaaaaaaa'), b'\x00' * 10)

        with self.raises(s_exc.MalformedInput):
            s_encoding.b32dec('not base32!')

    def test_lib_encoding_base64(self):
        self.eq(s_encoding.b64enc(b'visi'), 'dmlzaQ==')
        self.eq(s_encoding.b64enc(b'visi', pad=False), 'dmlzaQ')
        self.eq(s_encoding.b64dec('dmlzaQ', pad=True), b'visi')
        self.eq(s_encoding.b64dec(b'dmlzaQ=='), b'visi')

        with self.raises(s_exc.MalformedInput):
            s_encoding.b64dec('dmlzaQ')

        with self.raises(s_exc.MalformedInput):
            s_encoding.b64dec('dml*aQ==')

    def test_lib_encoding_pem(self):

        byts = b'x' * 100
        pem = s_encoding.pemenc('SIGNATURE', byts)

        lines = pem.split(b'\n')
        self.eq(lines[0], b'-----BEGIN SIGNATURE-----')
        self.len(64, lines[1])
        self.len(64, lines[2])
        self.len(8, lines[3])
        self.eq(lines[4], b'-----END SIGNATURE-----')
        self.eq(lines[5], b'')

        name, payload, rest = s_encoding.pemdec(pem + b'router-signature\n')
        self.eq(name, 'SIGNATURE')
        self.eq(payload, byts)
        self.eq(rest, b'router-signature\n')

        # the final END line may omit the newline
        name, payload, rest = s_encoding.pemdec(pem.rstrip(b'\n'))
        self.eq(payload, byts)
        self.eq(rest, b'')

    def test_lib_encoding_pem_bad(self):

        with self.raises(s_exc.MalformedInput):
            s_encoding.pemdec(b'signature\n')

        with self.raises(s_exc.MalformedInput) as cm:
            s_encoding.pemdec(b'-----BEGIN FOO-----\nAAAA\n-----END BAR-----\n')
        self.eq(cm.exception.get('name'), 'FOO')
        self.eq(cm.exception.get('endname'), 'BAR')

        with self.raises(s_exc.MalformedInput):
            s_encoding.pemdec(b'-----BEGIN FOO-----\nAAAA\n')

        with self.raises(s_exc.MalformedInput):
            s_encoding.pemdec(b'-----BEGIN FOO-----\n!!!!\n-----END FOO-----\n')

    def test_lib_encoding_hashes(self):
        self.eq(s_encoding.sha1(b'').hex(), 'da39a3ee5e6b4b0d3255bfef95601890afd80709')
        self.eq(s_encoding.sha3_256(b'').hex(), 'a7ffc6f8bf1ed76651c14756a061d662f580ff4de43b49fa82d80a4b80f8434a')
