import base64
import bz2
import hashlib
import io
import os
import tempfile
import zlib
from unittest import main, mock, TestCase

from pgpstreamdump import (AsciiData, BinaryData, DumpConfig, PacketDumper,
        PgpdumpException, dump_json, dump_text)
from pgpstreamdump.__main__ import dump_file, main as cli_main
from pgpstreamdump.decoders import LAYERS_NOTICE
from pgpstreamdump.dump import STREAM_NOTICE
from pgpstreamdump.fields import DumpNode
from pgpstreamdump.lookup import AlgoLookup
from pgpstreamdump.packet import S2K
from pgpstreamdump.render import IndentWriter, JsonRenderer
from pgpstreamdump.source import (DecompressedSource, old_tag_length,
        new_tag_length, peek_packet_header)
from pgpstreamdump.utils import (crc24, decode_s2k_iterations, get_int_bytes,
        get_mpi, hexdump)


DSA_SIG = base64.b64decode(
        b"iEYEABECAAYFAk6A4a4ACgkQXC5GoPU6du1ATACgodGyQne3Rb7"
        b"/eHBMRdau1KNSgZYAoLXRWt2G2wfp7haTBjJDFXMGsIMi")

ASCII_SIG = b'''
-----BEGIN PGP SIGNATURE-----
Version: GnuPG v1.4.11 (GNU/Linux)

iEYEABECAAYFAk6neOwACgkQXC5GoPU6du23AQCgghWjIFgBazXWIZNj4PGnkuYv
gMsAoLGOjudliDT9u0UqxN9KeJ22Jdne
=KYol
-----END PGP SIGNATURE-----'''

V3_SIG = b'''
-----BEGIN PGP SIGNATURE-----
Version: GnuPG v2.0.18 (GNU/Linux)

iD8DBQBPWDfGXC5GoPU6du0RAq6XAKC3TejpiBsu3pGF37Q9Id/vPzoFlwCgtwXE
E/GGdt/Cn5Rr1G933H9nwxo=
=aJ6u
-----END PGP SIGNATURE-----'''

COMPRESSED_MSG = b"""-----BEGIN PGP MESSAGE-----
Version: GnuPG v2

owFtUm1MFEcY5lAqnqJFWhpSautCLJiL7OzOfh0FQkREEpq0igk0hO7szh4b8A5u
Dw6KJxVo09ZrKicSCfEDpY39OisfLUHx40RA6I8SiBJBw5Wm1ZqmVtQE0dI5Yn80
6fyZzDvP87zP884ciFoWFmnqSq0uGfAfHDGN3kFh+dOfZNdSyKHWUNZaqhQvbZpu
t2FnuVO3uygrJSIRsRwCAmA4qCBOExTIiQJELIsEkRcVKGOJVWTKQpU4jBCDyCDZ
wJt1B6mRQ7Gukur/4EuXLmhAA5UDKo8ZVeB5GUmMLAIWI8hptKoAXsYy0qAoIZZX
BEaBDFQlUeGJMRmyEpKJJB2Sq1ySU0UNA5HVOCRigWWgxIsSQIQgYZljgRQCGthp
l3djgsY12KA8FsqJqxylOJTe0G3EsEFZ36E0GWq0BgCrMowmYVrUGEmRNValaRIB
KSwgM8Eaq/CIE1SORoBhaZ4BCGgc4ACmNaqIaJNuVbqyJP6sq013lVSi/zrZUWnP
cstOLeTGVVMeKrkxKn5GLka6XSXvQjhV2GnoDjtlBQSpuPQQG0BIc4DnedFC4epy
3YmL9RCCE3iRJstClZOERJJRMcnEsyrkJGkHpoGmkbliBQqiKkPA8owkYh7IZO4s
hwHLMrKEVU5RJcjQSMIiFcpTYXcQcZ4YlW1ElIzMLrsqnZjymD8Oj18eZooMey4i
PPS5wswrn//3x9n+Wvs0LuVE58tNvQH3QHSPmrpxT3Fc3dbmrd4X824UDqQZD2yZ
/uZXN0UYK5CFH0WzZzz3evCDfeKjvJgLP0/J6zK+f9LWbkmKXr5YdDjq7aj1bwze
HdGyPTFfwc9d4depF8qy/f11/fPxPza2FYy4rNsZJ13ts+3sLqxKNL6JSF7XXHra
tOFR+5aEnC+LzJe3rCnsSh27P6tuHM2AhV/jyT2DjcOb83OCC2m5Aw87UJWBRKbf
slpYOHJjavxsVr69bY5POnHz+M2zq7tNuV3Tvp41H8xN1KavF7tX/nSfS8w8Op7R
EhtpvxLu+9S9atuZg7u8rRvoU+dj9z6p9Fa044TJnDv+3EbvqXs9vcHb1oHjecN1
EzU1wYbUBcfv+eefPh57vW94U+rutILeIT144AvX+MmoCPO191v6Cs/d/kNYFWzy
vXYp/d2p2bjrnuls3GX0ZczOBYINJ+Ojf6gv+0xKTI/wnTvUnvDRpWNN11plxuQU
vA3s4K/bFnuZkk6rqe+XwOSQ/5Zrxu+r8L55eu8R2H+V+a7irYkCU3jcsg8TLPv3
/xk7XpqyMzZqJjC06DF12t6Lhe6W+bWBqytcHY230i/+lpKdMhSTOGMeeSmt9e5F
68N54XJHpuKG6VmPDx0ucfHJo/Vw7NvEC0fNenlu574rrzQl/e0pC9Tvoqe3e5PF
fwA=
=3Snw
-----END PGP MESSAGE-----"""

MARKER = b'\xa8\x03PGP'

RSA_N = b'\xc5' + bytes(range(1, 16))
RSA_E = b'\x01\x00\x01'
CTIME = 1500000000
CTIME_TEXT = "1500000000 (Fri Jul 14 02:40:00 2017)"
SALT = bytes(range(1, 9))


class Helper(object):
    def new_packet(self, tag, body, length=None):
        '''New format packet; length overrides the declared body length.'''
        if length is None:
            length = len(body)
        if length < 192:
            return bytes((0xc0 | tag, length)) + body
        if length < 8384:
            length -= 192
            return bytes((0xc0 | tag, (length >> 8) + 192,
                          length & 0xff)) + body
        return bytes((0xc0 | tag, 0xff)) + length.to_bytes(4, 'big') + body

    def old_packet(self, tag, body):
        return bytes((0x80 | (tag << 2), len(body))) + body

    def compressed(self, inner, algorithm=0):
        return self.new_packet(8, bytes((algorithm,)) + inner)

    def literal(self, data, filename=b'', timestamp=0):
        return self.new_packet(11, b'b' + bytes((len(filename),)) +
                filename + timestamp.to_bytes(4, 'big') + data)

    def rsa_public(self, version=4):
        if version < 4:
            pub = bytes((version,)) + CTIME.to_bytes(4, 'big') + b'\x00\x00'
        else:
            pub = bytes((version,)) + CTIME.to_bytes(4, 'big')
        return (pub + b'\x01' + b'\x00\x80' + RSA_N + b'\x00\x11' + RSA_E)

    def v4_fingerprint(self, pub):
        sha1 = hashlib.sha1()
        sha1.update(b'\x99' + len(pub).to_bytes(2, 'big'))
        sha1.update(pub)
        return sha1.digest()

    def lines(self, output):
        return [line.strip() for line in output.decode('utf-8').split('\n')]


class UtilsTestCase(TestCase):
    def test_crc24(self):
        self.assertEqual(0xb704ce, crc24(bytearray(b"")))
        self.assertEqual(0x21cf02, crc24(bytearray(b"123456789")))
        self.assertEqual(0x21cf02, crc24(b"123456789"))

    def test_mpi(self):
        mpi, offset = get_mpi(b'\x00\x09\x01\xff\x42', 0)
        self.assertEqual(4, offset)
        self.assertEqual(511, mpi.value)
        self.assertEqual(9, mpi.bits)
        self.assertEqual(b'\x01\xff', mpi.raw)

    def test_mpi_counts_actual_bits(self):
        mpi, offset = get_mpi(b'\x00\x10\x00\x05', 0)
        self.assertEqual(16, mpi.declared_bits)
        self.assertEqual(3, mpi.bits)

    def test_mpi_truncated(self):
        self.assertRaises(PgpdumpException, get_mpi, b'\x00\x20\x01', 0)

    def test_int_bytes(self):
        self.assertEqual(b'\x00', get_int_bytes(0))
        self.assertEqual(b'\x01\x00', get_int_bytes(256))
        self.assertEqual(b'\xff', get_int_bytes(255))

    def test_s2k_iterations(self):
        self.assertEqual(65536, decode_s2k_iterations(96))
        self.assertEqual(1024, decode_s2k_iterations(0))
        self.assertEqual(65011712, decode_s2k_iterations(255))

    def test_hexdump(self):
        rows = list(hexdump(b'abc\x00'))
        self.assertEqual(
                ['00000 | 61 62 63 00 ' + '   ' * 12 + ' | abc.' + ' ' * 12],
                rows)

    def test_hexdump_rows(self):
        rows = list(hexdump(bytes(range(0x41, 0x41 + 20))))
        self.assertEqual(2, len(rows))
        self.assertTrue(rows[1].startswith('00016 | 51 52 53 54 '))

    def test_sym_block_size(self):
        for alg, size in ((1, 8), (2, 8), (3, 8), (7, 16), (10, 16), (11, 16),
                          (13, 16), (105, 16), (99, 0)):
            self.assertEqual(size, AlgoLookup.lookup_sym_block_size(alg))
        self.assertEqual("Camellia-192", AlgoLookup.lookup_sym_algorithm(12))


class PacketHeaderTestCase(TestCase):
    def test_old_tag_length(self):
        data = [
            ((1, 2),    [0xb0, 0x02]),
            ((1, 70),   [0x88, 0x46]),
            ((2, 284),  [0x89, 0x01, 0x1c]),
            ((2, 1037), bytearray(b'\xb9\x04\x0d')),
            ((2, 5119), [0xb9, 0x13, 0xff]),
            ((4, 100000), [0xba, 0x00, 0x01, 0x86, 0xa0]),
            ((0, None), [0xa3]),
        ]
        for expected, invals in data:
            self.assertEqual(expected, old_tag_length(invals, 0))

    def test_new_tag_length(self):
        data = [
            ((1, 2, False), [0x02]),
            ((1, 168, False), [0xa8]),
            ((2, 1723, False), [0xc5, 0xfb]),
            ((2, 5119, False), [0xd3, 0x3f]),
            ((1, 8192, True), [0xed]),
            ((1, 1, True), [0xe0]),
            ((5, 26306, False), bytearray(b'\xff\x00\x00\x66\xc2')),
            ((5, 100000, False), [0xff, 0x00, 0x01, 0x86, 0xa0]),
        ]
        for expected, invals in data:
            self.assertEqual(expected, new_tag_length(invals, 0))

    def test_truncated_lengths(self):
        self.assertRaises(PgpdumpException, new_tag_length, [0xc5], 0)
        self.assertRaises(PgpdumpException, old_tag_length, [0x89, 0x01], 0)

    def test_peek_header(self):
        src = BinaryData(DSA_SIG)
        header = peek_packet_header(src)
        self.assertEqual(2, header.tag)
        self.assertEqual(70, header.length)
        self.assertFalse(header.new)
        self.assertEqual(b'\x88\x46', header.raw)
        # nothing consumed
        self.assertEqual(0, src.readb)

    def test_peek_partial_header(self):
        header = peek_packet_header(BinaryData(b'\xcb\xe2abcd'))
        self.assertTrue(header.new)
        self.assertTrue(header.partial)
        self.assertEqual(4, header.length)
        self.assertEqual("partial len", header.describe_length())

    def test_bad_header_byte(self):
        self.assertRaises(PgpdumpException, peek_packet_header,
                BinaryData(b'\x00\x01'))


class SourceTestCase(TestCase, Helper):
    def test_uncompressed_source(self):
        src = DecompressedSource(BinaryData(b'abc'), 0)
        self.assertEqual(b'abc', src.read(10))
        self.assertTrue(src.eof())

    def test_zlib_source(self):
        data = os.urandom(64) * 1000
        src = DecompressedSource(BinaryData(zlib.compress(data)), 2)
        self.assertEqual(data, src.read_all(len(data)))

    def test_read_all_limit(self):
        self.assertRaises(PgpdumpException,
                BinaryData(b'x' * 11).read_all, 10)

    def test_unknown_compression(self):
        self.assertRaises(PgpdumpException, DecompressedSource,
                BinaryData(b''), 7)

    def test_s2k_gnu_card(self):
        data = b'\x65\x00GNU\x02\x10' + bytes(range(16))
        s2k, offset = S2K.parse(data, 0)
        self.assertEqual(len(data), offset)
        self.assertTrue(s2k.is_experimental)
        self.assertEqual(S2K.GPG_SMARTCARD, s2k.gpg_ext_num)
        self.assertEqual(bytes(range(16)), s2k.gpg_serial)


class ArmorTestCase(TestCase, Helper):
    def test_ascii_sig(self):
        data = AsciiData(ASCII_SIG)
        self.assertEqual(72, data.length)
        self.assertEqual(0x88, data.data[0])

    def test_bad_crc(self):
        asc_data = ASCII_SIG.replace(b'Jdne', b'JdnX')
        self.assertRaises(PgpdumpException, AsciiData, asc_data)
        self.assertRaises(PgpdumpException, dump_text, asc_data)

    def test_missing_trailer(self):
        self.assertRaises(PgpdumpException, dump_text,
                b'-----BEGIN PGP MESSAGE-----\n\nqANQR1A=\n')

    def test_armored_text(self):
        output = dump_text(ASCII_SIG)
        self.assertTrue(output.startswith(
                b':armored input\n'
                b':off 0: packet header 0x8846 (tag 2, len 70)\n'
                b'Signature packet\n'))

    def test_binary_with_armor_text(self):
        '''A binary packet mentioning an armor header is not armor.'''
        data = self.old_packet(13, b'-----BEGIN PGP x')
        output = dump_text(data)
        self.assertNotIn(b':armored input', output)
        self.assertIn(b'UserID packet\n    id: -----BEGIN PGP x\n', output)

    def test_cleartext(self):
        data = (b'-----BEGIN PGP SIGNED MESSAGE-----\n'
                b'Hash: SHA1\n\nhello\n' + ASCII_SIG.lstrip())
        output = dump_text(data)
        self.assertTrue(output.startswith(
                b':cleartext signed data\n'
                b':armored input\n'
                b':off 0: packet header 0x8846 (tag 2, len 70)\n'))

    def test_cleartext_without_signature(self):
        data = (b'-----BEGIN PGP SIGNED MESSAGE-----\n'
                b'Hash: SHA1\n\nhello\n')
        self.assertRaises(PgpdumpException, dump_text, data)

    def test_empty(self):
        self.assertEqual(b':empty input\n', dump_text(b''))
        self.assertEqual([], dump_json(b''))
        self.assertEqual(b':empty input\n', dump_text(None))


class SignatureDumpTestCase(TestCase, Helper):
    def test_dsa_sig(self):
        expected = (
            ":off 0: packet header 0x8846 (tag 2, len 70)\n"
            "Signature packet\n"
            "    version: 4\n"
            "    type: 0 (Signature of a binary document)\n"
            "    public key algorithm: 17 (DSA)\n"
            "    hash algorithm: 2 (SHA1)\n"
            "    hashed subpackets:\n"
            "        :type 2, len 4\n"
            "        signature creation time: 1317069230 "
            "(Mon Sep 26 20:33:50 2011)\n"
            "    unhashed subpackets:\n"
            "        :type 16, len 8\n"
            "        issuer key ID: 0x5c2e46a0f53a76ed\n"
            "    lbits: 0x404c\n"
            "    signature material:\n"
            "        dsa r: 160 bits\n"
            "        dsa s: 160 bits\n")
        self.assertEqual(expected.encode('ascii'), dump_text(DSA_SIG))

    def test_dsa_sig_json(self):
        expected = [{
            'header': {
                'offset': 0,
                'tag': 2,
                'tag.str': 'Signature',
                'raw': '8846',
                'length': 70,
                'partial': False,
                'indeterminate': False,
            },
            'version': 4,
            'type': 0,
            'type.str': 'Signature of a binary document',
            'algorithm': 17,
            'algorithm.str': 'DSA',
            'hash algorithm': 2,
            'hash algorithm.str': 'SHA1',
            'subpackets': [{
                'type': 2,
                'type.str': 'signature creation time',
                'length': 4,
                'hashed': True,
                'critical': False,
                'creation time': 1317069230,
            }, {
                'type': 16,
                'type.str': 'issuer key ID',
                'length': 8,
                'hashed': False,
                'critical': False,
                'issuer keyid': '5c2e46a0f53a76ed',
            }],
            'lbits': '404c',
            'material': {'r.bits': 160, 's.bits': 160},
        }]
        self.assertEqual(expected, dump_json(DSA_SIG))

    def test_v3_sig(self):
        expected = (
            ":armored input\n"
            ":off 0: packet header 0x883f (tag 2, len 63)\n"
            "Signature packet\n"
            "    version: 3\n"
            "    type: 0 (Signature of a binary document)\n"
            "    creation time: 1331181510 (Thu Mar  8 04:38:30 2012)\n"
            "    signing key id: 0x5c2e46a0f53a76ed\n"
            "    public key algorithm: 17 (DSA)\n"
            "    hash algorithm: 2 (SHA1)\n"
            "    lbits: 0xae97\n"
            "    signature material:\n"
            "        dsa r: 160 bits\n"
            "        dsa s: 160 bits\n")
        self.assertEqual(expected.encode('ascii'), dump_text(V3_SIG))

    def test_mpi_contents(self):
        packets = dump_json(DSA_SIG, dump_mpi=True)
        material = packets[0]['material']
        self.assertEqual(160, material['r.bits'])
        self.assertEqual(40, len(material['r.raw']))
        self.assertTrue(material['r.raw'].startswith('a1d1b2'))

    def test_raw_subpackets(self):
        output = dump_text(DSA_SIG, dump_packets=True)
        self.assertIn(b'        :subpacket contents:\n'
                b'            00000 | 4e 80 e1 ae ', output)
        self.assertIn(b':off 2: packet contents (70 bytes)\n', output)

    def signature(self, hashed, sig_type=0x00):
        body = bytes((4, sig_type, 17, 2)) + len(hashed).to_bytes(2, 'big')
        body += hashed + b'\x00\x00' + b'\xab\xcd'
        return body + b'\x00\x01\x01\x00\x01\x01'

    def subpacket(self, subtype, data):
        return bytes((len(data) + 1, subtype)) + data

    def test_subpackets(self):
        hashed = (self.subpacket(27, b'\x03') +
                self.subpacket(11, b'\x09\x08\x07') +
                self.subpacket(0x80 | 30, b'\x01') +
                self.subpacket(9, b'\x00\x01\x51\x80') +
                self.subpacket(25, b'\x01') +
                self.subpacket(29, b'\x01gone'))
        data = self.old_packet(2, self.signature(hashed, 0x13))
        lines = self.lines(dump_text(data))
        self.assertIn("key flags: 0x03 ( certify sign )", lines)
        self.assertIn("preferred symmetric algorithms: "
                "AES-256, AES-192, AES-128 (9, 8, 7)", lines)
        self.assertIn(":type 30, len 1, critical", lines)
        self.assertIn("features: 0x01 ( mdc )", lines)
        self.assertIn("key expiration time: 86400 seconds (1 days)", lines)
        self.assertIn("primary user ID: 1", lines)
        self.assertIn("reason for revocation: 1 (Superseded)", lines)
        self.assertIn("message: gone", lines)

        packet = dump_json(data)[0]
        subpackets = packet['subpackets']
        self.assertEqual([27, 11, 30, 9, 25, 29],
                [sub['type'] for sub in subpackets])
        self.assertEqual(['certify', 'sign'], subpackets[0]['flags.str'])
        self.assertEqual([9, 8, 7], subpackets[1]['algorithms'])
        self.assertTrue(subpackets[2]['critical'])
        self.assertTrue(subpackets[2]['mdc'])
        self.assertFalse(subpackets[2]['aead'])
        self.assertTrue(subpackets[4]['primary'])
        self.assertEqual('gone', subpackets[5]['message'])

    def test_notation(self):
        data = b'\x80\x00\x00\x00\x00\x04\x00\x02testok'
        hashed = self.subpacket(20, data)
        lines = self.lines(dump_text(self.old_packet(2,
                self.signature(hashed))))
        self.assertIn("notation data: test = ok", lines)

    def test_malformed_subpacket(self):
        # creation time with three octets
        hashed = self.subpacket(2, b'\x01\x02\x03')
        output = dump_text(self.old_packet(2, self.signature(hashed)))
        self.assertIn(b'        :type 2, len 3\n'
                b'            00000 | 01 02 03 ', output)
        self.assertNotIn(b'failed to parse', output)

    def embedded(self):
        inner = self.signature(b'', 0x19)
        return self.old_packet(2, self.signature(self.subpacket(32, inner)))

    def test_embedded_sig(self):
        expected = (
            "    hashed subpackets:\n"
            "        :type 32, len 16\n"
            "        embedded signature:\n"
            "            version: 4\n"
            "            type: 25 (Primary Key Binding Signature)\n"
            "            public key algorithm: 17 (DSA)\n"
            "            hash algorithm: 2 (SHA1)\n"
            "            hashed subpackets:\n"
            "                none\n"
            "            unhashed subpackets:\n"
            "                none\n"
            "            lbits: 0xabcd\n"
            "            signature material:\n"
            "                dsa r: 1 bits\n"
            "                dsa s: 1 bits\n"
            "    unhashed subpackets:\n"
            "        none\n"
            "    lbits: 0xabcd\n")
        self.assertIn(expected.encode('ascii'), dump_text(self.embedded()))

        sub = dump_json(self.embedded())[0]['subpackets'][0]
        self.assertEqual(25, sub['signature']['type'])
        self.assertEqual([], sub['signature']['subpackets'])

    def test_embedded_sig_layers(self):
        output = dump_text(self.embedded(), max_layers=1)
        self.assertIn(("        %s\n" % LAYERS_NOTICE).encode('ascii'),
                output)
        self.assertNotIn(b'Primary Key Binding', output)

    def test_truncated_sig(self):
        data = b'\x88\x03\x04\x00\x11'
        self.assertEqual(
                b':off 0: packet header 0x8803 (tag 2, len 3)\n'
                b'Signature packet\n'
                b'    failed to parse\n',
                dump_text(data))

    def test_short_body(self):
        data = b'\x88\x0a\x04\x00\x11'
        self.assertIn(b'    failed to parse\n', dump_text(data))
        packets = dump_json(data)
        self.assertEqual(1, len(packets))
        self.assertEqual(10, packets[0]['header']['length'])

    def test_unknown_version(self):
        data = self.old_packet(2, b'\x07\x00\x11\x02')
        self.assertIn(b'failed to parse', dump_text(data))


class KeyDumpTestCase(TestCase, Helper):
    def test_rsa_key(self):
        pub = self.rsa_public()
        fingerprint = self.v4_fingerprint(pub)
        grip = hashlib.sha1(b'\x00' + RSA_N).digest()
        output = dump_text(self.old_packet(6, pub), dump_grips=True)
        self.assertEqual(
                ":off 0: packet header 0x98%02x (tag 6, len %d)\n"
                "Public key packet\n"
                "    version: 4\n"
                "    creation time: %s\n"
                "    public key algorithm: 1 (RSA (Encrypt or Sign))\n"
                "    public key material:\n"
                "        rsa n: 128 bits\n"
                "        rsa e: 17 bits\n"
                "    keyid: 0x%s\n"
                "    fingerprint: 0x%s\n"
                "    grip: 0x%s\n" % (
                    len(pub), len(pub), CTIME_TEXT, fingerprint[12:].hex(),
                    fingerprint.hex(), grip.hex()),
                output.decode('ascii'))

    def test_rsa_key_json(self):
        pub = self.rsa_public()
        packet = dump_json(self.old_packet(14, pub), dump_mpi=True)[0]
        self.assertEqual(14, packet['header']['tag'])
        self.assertEqual('Public Subkey', packet['header']['tag.str'])
        self.assertEqual(CTIME, packet['creation time'])
        self.assertEqual({
            'n.bits': 128,
            'n.raw': RSA_N.hex(),
            'e.bits': 17,
            'e.raw': RSA_E.hex(),
        }, packet['material'])
        self.assertEqual(self.v4_fingerprint(pub)[12:].hex(),
                packet['keyid'])
        self.assertNotIn('fingerprint', packet)

    def test_v3_key(self):
        pub = self.rsa_public(version=3)
        lines = self.lines(dump_text(self.old_packet(6, pub),
                dump_grips=True))
        self.assertIn("v3 validity days: 0", lines)
        self.assertIn("keyid: 0x%s" % RSA_N[-8:].hex(), lines)
        self.assertIn("fingerprint: 0x%s" %
                hashlib.md5(RSA_N + RSA_E).hexdigest(), lines)

    def test_ecdh_key(self):
        oid = bytes.fromhex('2a8648ce3d030107')
        pub = (b'\x04' + CTIME.to_bytes(4, 'big') + b'\x12' +
                bytes((len(oid),)) + oid + b'\x00\x03\x04' +
                b'\x03\x01\x08\x07')
        lines = self.lines(dump_text(self.old_packet(14, pub),
                dump_grips=True))
        self.assertIn("Public subkey packet", lines)
        self.assertIn("public key algorithm: 18 (ECDH)", lines)
        self.assertIn("ecdh p: 3 bits", lines)
        self.assertIn("ecdh curve: NIST P-256", lines)
        self.assertIn("ecdh hash algorithm: 8 (SHA256)", lines)
        self.assertIn("ecdh key wrap algorithm: 7", lines)
        self.assertIn("fingerprint: 0x%s" %
                self.v4_fingerprint(pub).hex(), lines)
        self.assertIn("grip: failed to calculate", lines)

        packet = dump_json(self.old_packet(14, pub))[0]
        self.assertEqual("NIST P-256", packet['material']['curve'])
        self.assertEqual(7, packet['material']['key wrap algorithm'])
        self.assertEqual("AES-128", packet['material']['key wrap algorithm.str'])

    def test_secret_key(self):
        pub = self.rsa_public()
        secret = (pub + b'\xfe\x03' + b'\x03\x02' + SALT + b'\x60' +
                bytes.fromhex('0011223344556677') + b'\x00' * 20)
        data = self.old_packet(5, secret)
        lines = self.lines(dump_text(data))
        for line in (
                "Secret key packet",
                "secret key material:",
                "s2k usage: 254",
                "symmetric algorithm: 3 (CAST5)",
                "s2k specifier: 3",
                "s2k hash algorithm: 2 (SHA1)",
                "s2k salt: 0x0102030405060708",
                "s2k iterations: 65536 (encoded as 96)",
                "cipher iv: 0x0011223344556677 (8 bytes)",
                "encrypted secret key data: 20 bytes",
                "keyid: 0x%s" % self.v4_fingerprint(pub)[12:].hex()):
            self.assertIn(line, lines)

        material = dump_json(data)[0]['material']
        self.assertEqual(128, material['n.bits'])
        self.assertEqual(254, material['s2k usage'])
        self.assertEqual('CAST5', material['symmetric algorithm.str'])
        self.assertEqual(65536, material['s2k']['iterations'])
        self.assertEqual('0011223344556677', material['cipher iv'])

    def test_gnu_dummy_key(self):
        pub = self.rsa_public()
        secret = pub + b'\xff\x00' + b'\x65\x02GNU\x01'
        lines = self.lines(dump_text(self.old_packet(7, secret)))
        self.assertIn("Secret subkey packet", lines)
        self.assertIn("s2k usage: 255", lines)
        self.assertIn("s2k specifier: 101", lines)
        self.assertIn("GPG extension num: 1", lines)
        self.assertIn("encrypted secret key data: 0 bytes", lines)
        self.assertFalse([line for line in lines
                if line.startswith("cipher iv")])

    def test_cleartext_secret_key(self):
        secret = self.rsa_public() + b'\x00' + b'\x00' * 6
        lines = self.lines(dump_text(self.old_packet(5, secret)))
        self.assertIn("s2k usage: 0", lines)
        self.assertIn("cleartext secret key data: 6 bytes", lines)

    def test_unknown_key_version(self):
        data = self.old_packet(6, b'\x09' + b'\x00' * 10)
        self.assertIn(b'Public key packet\n    failed to parse\n',
                dump_text(data))


class PacketDumpTestCase(TestCase, Helper):
    def test_marker(self):
        self.assertEqual(
                b':off 0: packet header 0xa803 (tag 10, len 3)\n'
                b'Marker packet\n'
                b'    contents: PGP\n',
                dump_text(MARKER))
        self.assertEqual('PGP', dump_json(MARKER)[0]['contents'])

    def test_invalid_marker(self):
        data = b'\xa8\x03PGX'
        self.assertIn(b'    contents: invalid\n', dump_text(data))
        self.assertEqual('invalid', dump_json(data)[0]['contents'])

    def test_packet_contents(self):
        expected = (
            ":off 0: packet header 0xa803 (tag 10, len 3)\n"
            ":off 2: packet contents (3 bytes)\n"
            "    00000 | 50 47 50 " + "   " * 13 + " | PGP" + " " * 13 + "\n"
            "\n"
            "Marker packet\n"
            "    contents: PGP\n")
        self.assertEqual(expected.encode('ascii'),
                dump_text(MARKER, dump_packets=True))
        self.assertEqual('504750', dump_json(MARKER, dump_packets=True)[0]['raw'])

    def test_packet_contents_limit(self):
        data = self.literal(b'x' * 100)
        output = dump_text(data, dump_packets=True, packet_dump_limit=16)
        self.assertIn(b':off 2: packet contents (first 16 bytes)\n', output)
        self.assertIn(b'data bytes: 100\n', output)

    def test_userid(self):
        data = b'\xb4\x05alice'
        self.assertEqual(
                b':off 0: packet header 0xb405 (tag 13, len 5)\n'
                b'UserID packet\n'
                b'    id: alice\n',
                dump_text(data))
        self.assertEqual('alice', dump_json(data)[0]['userid'])

    def test_userid_invalid_utf8(self):
        data = self.old_packet(13, b'al\xffce')
        self.assertIn(b'    id: al\xffce\n', dump_text(data))
        self.assertEqual('al\ufffdce', dump_json(data)[0]['userid'])

    def test_user_attribute(self):
        data = self.new_packet(17, b'\x01' * 40)
        self.assertIn(b'UserAttr packet\n    id: (40 bytes of data)\n',
                dump_text(data))

    def test_literal(self):
        data = self.literal(b'hello world\n', b'hello.txt', CTIME)
        lines = self.lines(dump_text(data))
        self.assertEqual([
            ":off 0: packet header 0xcb%02x (tag 11, len %d)" % (
                len(data) - 2, len(data) - 2),
            "Literal data packet",
            "data format: 'b'",
            "filename: hello.txt (len 9)",
            "timestamp: %s" % CTIME_TEXT,
            "data bytes: 12",
            "",
        ], lines)

        packet = dump_json(data)[0]
        self.assertEqual('b', packet['format'])
        self.assertEqual('hello.txt', packet['filename'])
        self.assertEqual(CTIME, packet['timestamp'])
        self.assertEqual(12, packet['datalen'])

    def test_partial_literal(self):
        body = b'b\x00' + b'\x00' * 4 + b'abcdef'
        data = b'\xcb\xe2' + body[:4] + bytes((len(body) - 4,)) + body[4:]
        output = dump_text(data + MARKER)
        self.assertTrue(output.startswith(
                b':off 0: packet header 0xcbe2 (tag 11, partial len)\n'))
        self.assertIn(b'    data bytes: 6\n', output)
        self.assertIn(b'Marker packet\n', output)

        header = dump_json(data)[0]['header']
        self.assertTrue(header['partial'])
        self.assertNotIn('length', header)

    def test_pk_session_key(self):
        keyid = bytes.fromhex('1122334455667788')
        data = self.new_packet(1, b'\x03' + keyid + b'\x01\x00\x09\x01\xff')
        lines = self.lines(dump_text(data))
        self.assertIn("Public-key encrypted session key packet", lines)
        self.assertIn("key id: 0x1122334455667788", lines)
        self.assertIn("public key algorithm: 1 (RSA (Encrypt or Sign))",
                lines)
        self.assertIn("rsa m: 9 bits", lines)
        packet = dump_json(data)[0]
        self.assertEqual('1122334455667788', packet['keyid'])
        self.assertEqual({'m.bits': 9}, packet['material'])

    def test_sk_session_key(self):
        data = self.new_packet(3, b'\x04\x09\x03\x02' + SALT + b'\x60')
        self.assertEqual(
                b':off 0: packet header 0xc30d (tag 3, len 13)\n'
                b'Symmetric-key encrypted session key packet\n'
                b'    version: 4\n'
                b'    symmetric algorithm: 9 (AES-256)\n'
                b'    s2k specifier: 3\n'
                b'    s2k hash algorithm: 2 (SHA1)\n'
                b'    s2k salt: 0x0102030405060708\n'
                b'    s2k iterations: 65536 (encoded as 96)\n'
                b'    encrypted key: 0x (0 bytes)\n',
                dump_text(data))

        packet = dump_json(data)[0]
        self.assertEqual({
            'specifier': 3,
            'hash algorithm': 2,
            'hash algorithm.str': 'SHA1',
            'salt': '0102030405060708',
            'iterations': 65536,
        }, packet['s2k'])
        self.assertEqual('AES-256', packet['algorithm.str'])
        self.assertEqual('', packet['encrypted key'])

    def test_one_pass(self):
        data = self.new_packet(4, b'\x03\x00\x02\x11' +
                bytes.fromhex('5c2e46a0f53a76ed') + b'\x01')
        lines = self.lines(dump_text(data))
        self.assertIn("One-pass signature packet", lines)
        self.assertIn("signature type: 0 (Signature of a binary document)",
                lines)
        self.assertIn("signing key id: 0x5c2e46a0f53a76ed", lines)
        self.assertIn("nested: 0", lines)
        self.assertFalse(dump_json(data)[0]['nested'])

    def test_encrypted(self):
        data = self.new_packet(9, b'\x00' * 20) + self.new_packet(18, b'\x01')
        self.assertEqual(
                b':off 0: packet header 0xc914 (tag 9, len 20)\n'
                b'Symmetrically-encrypted data packet\n'
                b'\n'
                b':off 22: packet header 0xd201 (tag 18, len 1)\n'
                b'Symmetrically-encrypted integrity protected data packet\n'
                b'\n',
                dump_text(data))

    def test_aead(self):
        iv = bytes(range(15))
        data = self.new_packet(20, b'\x01\x09\x02\x0c' + iv + b'\x00' * 16)
        lines = self.lines(dump_text(data))
        self.assertIn("AEAD-encrypted data packet", lines)
        self.assertIn("aead algorithm: 2 (OCB)", lines)
        self.assertIn("chunk size: 12", lines)
        self.assertIn("initialization vector: 0x%s (15 bytes)" % iv.hex(),
                lines)
        self.assertEqual(iv.hex(), dump_json(data)[0]['aead iv'])

    def test_aead_short_header(self):
        data = self.new_packet(20, b'\x01\x09\x02\x0c\x00\x00')
        self.assertIn(b'    ERROR: failed to read AEAD header\n',
                dump_text(data))

    def test_unhandled(self):
        data = self.new_packet(12, b'\x00\x00') + MARKER
        output = dump_text(data, max_errors=0)
        self.assertIn(b'Skipping unhandled pkt: 12\n\n', output)
        self.assertIn(b'Marker packet\n', output)

    def test_idempotent(self):
        data = COMPRESSED_MSG + b''
        self.assertEqual(dump_text(data), dump_text(data))
        dumper = PacketDumper()
        first = dumper.dump(BinaryData(data), JsonRenderer()).result
        second = dumper.dump(BinaryData(data), JsonRenderer()).result
        self.assertEqual(first, second)

    def test_header_per_tag(self):
        keyid = b'\x01\x02\x03\x04\x05\x06\x07\x08'
        secret = self.rsa_public() + b'\x00' + b'\x00' * 6
        packets = {
            1: (b'\x03' + keyid + b'\x01\x00\x09\x01\xff',
                "Public-Key Encrypted Session Key"),
            2: (DSA_SIG[2:], "Signature"),
            3: (b'\x04\x09\x03\x02' + SALT + b'\x60',
                "Symmetric-Key Encrypted Session Key"),
            4: (b'\x03\x00\x02\x11' + keyid + b'\x01', "One-Pass Signature"),
            5: (secret, "Secret Key"),
            6: (self.rsa_public(), "Public Key"),
            7: (secret, "Secret Subkey"),
            8: (b'\x00' + MARKER, "Compressed Data"),
            9: (b'\x00' * 20, "Symmetrically Encrypted Data"),
            10: (b'PGP', "Marker"),
            11: (b'b\x00' + CTIME.to_bytes(4, 'big') + b'data',
                 "Literal Data"),
            13: (b'alice', "User ID"),
            14: (self.rsa_public(), "Public Subkey"),
            17: (b'\x01' * 40, "User Attribute"),
            18: (b'\x01', "Symmetric Encrypted and Integrity Protected Data"),
            20: (b'\x01\x09\x02\x0c' + bytes(range(15)) + b'\x00' * 16,
                 "AEAD Encrypted Data Packet"),
        }
        self.assertEqual(set(PacketDumper.DECODERS), set(packets))

        for tag, (body, name) in sorted(packets.items()):
            data = self.new_packet(tag, body)
            expected = ":off 0: packet header 0x%02x%02x (tag %d, len %d)\n" % (
                0xc0 | tag, len(body), tag, len(body))
            self.assertTrue(
                    dump_text(data).startswith(expected.encode('ascii')),
                    "tag %d" % tag)
            header = dump_json(data)[0]['header']
            self.assertEqual(tag, header['tag'])
            self.assertEqual(name, header['tag.str'])
            self.assertEqual(len(body), header['length'])
            self.assertEqual(0, header['offset'])


class CompressedDumpTestCase(TestCase, Helper):
    def test_compressed_zip(self):
        packets = dump_json(COMPRESSED_MSG)
        self.assertEqual(1, len(packets))
        packet = packets[0]
        self.assertEqual(1, packet['algorithm'])
        self.assertEqual('ZIP', packet['algorithm.str'])
        self.assertTrue(packet['header']['indeterminate'])
        self.assertEqual(3, len(packet['contents']))
        self.assertIn(11, [p['header']['tag'] for p in packet['contents']])

    def test_compressed_text(self):
        output = dump_text(COMPRESSED_MSG)
        self.assertTrue(output.startswith(
                b':armored input\n'
                b':off 0: packet header 0xa3 (tag 8, indeterminate len)\n'
                b'Compressed data packet\n'
                b'    compression algorithm: 1 (ZIP)\n'
                b'    Decompressed contents:\n'
                b'    :off 0: packet header '))

    def test_compressed_algorithms(self):
        deflate = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
        raw = deflate.compress(MARKER) + deflate.flush()
        for algorithm, data in ((0, MARKER), (1, raw),
                                (2, zlib.compress(MARKER)),
                                (3, bz2.compress(MARKER))):
            packet = dump_json(self.compressed(data, algorithm))[0]
            self.assertEqual(algorithm, packet['algorithm'])
            self.assertEqual(1, len(packet['contents']))
            self.assertEqual(10, packet['contents'][0]['header']['tag'])
            self.assertEqual('PGP', packet['contents'][0]['contents'])

    def test_nested_indent(self):
        output = dump_text(self.compressed(MARKER))
        self.assertIn(b'    Decompressed contents:\n'
                b'    :off 0: packet header 0xa803 (tag 10, len 3)\n'
                b'    Marker packet\n'
                b'        contents: PGP\n', output)

    def test_corrupt_stream(self):
        data = self.compressed(b'\xff\xff\xff\xff', 1)
        packets = dump_json(data)
        self.assertEqual(1, len(packets))
        self.assertNotIn('contents', packets[0])
        self.assertIn(b'Compressed data packet\n', dump_text(data))

    def test_truncated_nested_packet(self):
        '''The compressed packet promises more data than there is, so the
        User ID after the literal runs off the end while it is dumped.'''
        inner = (self.literal(b'x' * 16000) +
                 self.new_packet(13, b'x' * 500, length=1000))
        body = b'\x00' + inner
        data = self.new_packet(8, body, length=len(body) + 5000)

        packets = dump_json(data, dump_packets=True)
        self.assertEqual(1, len(packets))
        self.assertEqual(8, packets[0]['header']['tag'])
        self.assertEqual('Compressed Data', packets[0]['header']['tag.str'])
        self.assertEqual(0, packets[0]['algorithm'])
        self.assertNotIn('contents', packets[0])

        output = dump_text(data, dump_packets=True)
        self.assertIn(b'Compressed data packet\n', output)
        self.assertIn(b'(tag 13, len 1000)\n', output)

    def test_unknown_algorithm(self):
        data = self.compressed(b'\x00', 9)
        lines = self.lines(dump_text(data))
        self.assertIn("compression algorithm: 9 (Unknown)", lines)
        self.assertIn("failed to parse", lines)

    def test_layers(self):
        data = MARKER
        for _ in range(4):
            data = self.compressed(data)
        original = PacketDumper.dump_compressed
        with mock.patch.object(PacketDumper, 'dump_compressed',
                autospec=True, side_effect=original) as decoder:
            output = dump_text(data, max_layers=3)
        self.assertEqual(3, decoder.call_count)
        self.assertEqual(1, output.count(LAYERS_NOTICE.encode('ascii')))
        self.assertNotIn(b'Marker packet', output)

        with mock.patch.object(PacketDumper, 'dump_compressed',
                autospec=True, side_effect=original) as decoder:
            output = dump_text(data)
        self.assertEqual(4, decoder.call_count)
        self.assertIn(b'Marker packet', output)

    def test_quine(self):
        '''A compressed packet containing itself is cut off by the layer
        bound.'''
        data = MARKER
        for _ in range(100):
            data = self.compressed(data)
        output = dump_text(data, max_stream_packets=1000)
        self.assertEqual(32, output.count(b'Compressed data packet\n'))
        self.assertIn(LAYERS_NOTICE.encode('ascii'), output)


class BoundsTestCase(TestCase, Helper):
    def test_max_errors(self):
        data = self.new_packet(50, b'') * 5 + MARKER
        output = dump_text(data, max_errors=2)
        self.assertEqual(3, output.count(b'Skipping Unknown pkt: 50\n\n'))
        self.assertNotIn(b'Marker packet', output)
        self.assertEqual(3, len(dump_json(data, max_errors=2)))

    def test_errors_below_bound(self):
        data = self.new_packet(50, b'') * 2 + MARKER
        output = dump_text(data, max_errors=2)
        self.assertIn(b'Marker packet', output)

    def test_max_stream_packets(self):
        data = self.literal(b'x') * 4 + MARKER
        output = dump_text(data, max_stream_packets=2)
        self.assertEqual(3, output.count(b'Literal data packet\n'))
        self.assertEqual(1, output.count(STREAM_NOTICE.encode('ascii')))
        self.assertNotIn(b'Marker packet', output)
        self.assertEqual(3, len(dump_json(data, max_stream_packets=2)))

    def test_stream_packets_in_compressed(self):
        inner = self.literal(b'x') * 3
        data = self.compressed(inner)
        output = dump_text(data, max_stream_packets=2)
        # the compressed packet counts as well
        self.assertEqual(2, output.count(b'Literal data packet\n'))
        self.assertEqual(1, output.count(STREAM_NOTICE.encode('ascii')))

    def test_packet_size(self):
        data = self.new_packet(13, b'x' * 300)
        output = dump_text(data, max_packet_size=100)
        self.assertIn(b'UserID packet\n    failed to parse\n', output)

    def test_config(self):
        config = DumpConfig(max_layers=4)
        self.assertEqual(4, PacketDumper(config).config.max_layers)
        self.assertEqual(64, PacketDumper(max_layers=4).config.max_errors)
        self.assertIn('max_layers=4', repr(config))


class RenderTestCase(TestCase):
    def test_indent_writer(self):
        sink = io.BytesIO()
        out = IndentWriter(sink, 1)
        out.write("a")
        out.write("b\nc")
        out.line("")
        out.line("")
        out.decrease()
        out.line(b"d")
        self.assertEqual(b'    ab\n    c\n    \nd\n', sink.getvalue())

    def test_decrease_floor(self):
        sink = io.BytesIO()
        out = IndentWriter(sink)
        out.decrease()
        out.line("x")
        self.assertEqual(b'x\n', sink.getvalue())

    def test_json_incomplete_contents(self):
        renderer = JsonRenderer()
        renderer.begin_packet()
        node = DumpNode()
        node.value('version', 1)
        renderer.emit(node)
        renderer.begin_contents()
        renderer.begin_packet()
        renderer.end_packet()
        renderer.end_contents(False)
        renderer.end_packet()
        self.assertEqual([{'version': 1}], renderer.result)

    def test_json_abort_packet(self):
        renderer = JsonRenderer()
        renderer.begin_packet()
        node = DumpNode()
        node.value('version', 1)
        renderer.emit(node)
        renderer.begin_contents()
        renderer.begin_packet()
        node = DumpNode()
        node.value('version', 2)
        renderer.emit(node)
        renderer.abort_packet()
        renderer.end_contents(True)
        renderer.end_packet()
        self.assertEqual([{'version': 1, 'contents': []}], renderer.result)

    def test_node_projections(self):
        node = DumpNode("Title")
        node.value('shown', True)
        node.value('hidden', 2, text=False)
        node.line("only text")
        sink = io.BytesIO()
        node.render_text(IndentWriter(sink))
        self.assertEqual(b'Title\n    shown: 1\n    only text\n',
                sink.getvalue())
        self.assertEqual({'shown': True, 'hidden': 2}, node.to_json())


class CommandLineTestCase(TestCase, Helper):
    def test_dump_file(self):
        out = io.BytesIO()
        dump_file(PacketDumper(), io.BytesIO(MARKER), False, out)
        self.assertEqual(dump_text(MARKER), out.getvalue())

    def test_dump_file_json(self):
        out = io.BytesIO()
        dump_file(PacketDumper(), io.BytesIO(MARKER), True, out)
        self.assertIn(b'"contents": "PGP"', out.getvalue())
        self.assertTrue(out.getvalue().endswith(b']\n'))

    def run_main(self, argv):
        buf = io.BytesIO()
        stdout = io.TextIOWrapper(buf)
        stderr = io.StringIO()
        with mock.patch('sys.stdout', stdout), \
                mock.patch('sys.stderr', stderr):
            try:
                cli_main(argv)
                code = 0
            except SystemExit as e:
                code = e.code
        return code, buf.getvalue(), stderr.getvalue()

    def test_main(self):
        with tempfile.NamedTemporaryFile(suffix='.gpg', delete=False) as f:
            f.write(DSA_SIG)
        try:
            code, output, errors = self.run_main(['-g', f.name])
        finally:
            os.unlink(f.name)
        self.assertEqual(0, code)
        self.assertEqual(dump_text(DSA_SIG), output)
        self.assertEqual('', errors)

    def test_main_missing_file(self):
        code, output, errors = self.run_main(['/nonexistent/file.gpg'])
        self.assertEqual(1, code)
        self.assertTrue(errors.startswith(
                'pgpstreamdump: error: /nonexistent/file.gpg: '))


if __name__ == '__main__':
    main()
