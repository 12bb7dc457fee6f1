import hashlib
import logging

from .data import BinaryData
from .lookup import AlgoLookup, TAG_NAMES
from .source import DecompressedSource, new_tag_length
from .utils import (PgpdumpException, get_bytes, get_hex_data,
                    get_int2, get_int4, get_int_bytes, get_mpi,
                    decode_s2k_iterations)


LOG = logging.getLogger(__name__)

MARKER_CONTENTS = b'PGP'
AEAD_HEADER_PEEK = 64


class Packet(object):
    '''The base packet object containing various fields pulled from the
    packet header as well as the packet body.'''

    def __init__(self, raw, new, data):
        self.raw = raw
        self.name = TAG_NAMES.get(raw, "Unknown")
        self.new = new
        self.length = len(data)
        self.data = bytes(data)

        # now let subclasses work their magic
        try:
            self.parse()
        except IndexError:
            raise PgpdumpException("%s packet is truncated" % self.name)

    def parse(self):
        """Perform any parsing necessary to populate fields on this packet.
        This method is called as the last step in __init__(). The base class
        method is a no-op; subclasses should use this as required."""
        return 0

    def __repr__(self):
        new = "old"
        if self.new:
            new = "new"
        return "<%s: %s (%d), %s, length %d>" % (
            self.__class__.__name__, self.name, self.raw, new, self.length)


class S2K(AlgoLookup):
    '''A string-to-key specifier, see
    https://tools.ietf.org/html/rfc4880#section-3.7'''
    SIMPLE = 0
    SALTED = 1
    ITERATED_SALTED = 3
    EXPERIMENTAL = 101

    GPG_NO_SECRET = 1
    GPG_SMARTCARD = 2

    def __init__(self):
        self.specifier = None
        self.raw_hash_algorithm = None
        self.salt = None
        self.raw_iterations = None
        self.gpg_ext_num = None
        self.gpg_serial = None
        self.experimental = None

    @property
    def iterations(self):
        return decode_s2k_iterations(self.raw_iterations)

    @property
    def is_experimental(self):
        return self.specifier == self.EXPERIMENTAL

    @classmethod
    def parse(cls, data, offset, end=None):
        '''Returns the parsed specifier and the offset following it.'''
        if end is None:
            end = len(data)
        s2k = cls()
        s2k.specifier = data[offset]
        offset += 1

        if s2k.specifier == cls.EXPERIMENTAL:
            # GnuPG extension: hash algorithm, "GNU", then the mode octet
            start = offset
            if data[offset + 1:offset + 4] == b'GNU':
                s2k.raw_hash_algorithm = data[offset]
                s2k.gpg_ext_num = data[offset + 4]
                offset += 5
                if s2k.gpg_ext_num == cls.GPG_SMARTCARD:
                    serial_len = data[offset]
                    offset += 1
                    s2k.gpg_serial = get_bytes(data, offset, serial_len)
                    offset += serial_len
                if s2k.gpg_ext_num in (cls.GPG_NO_SECRET, cls.GPG_SMARTCARD):
                    return s2k, offset
            s2k.gpg_ext_num = None
            s2k.experimental = data[start:end]
            return s2k, end

        if s2k.specifier not in (cls.SIMPLE, cls.SALTED, cls.ITERATED_SALTED):
            raise PgpdumpException("Unsupported s2k specifier %d" %
                                   s2k.specifier)
        s2k.raw_hash_algorithm = data[offset]
        offset += 1
        if s2k.specifier in (cls.SALTED, cls.ITERATED_SALTED):
            s2k.salt = get_bytes(data, offset, 8)
            offset += 8
        if s2k.specifier == cls.ITERATED_SALTED:
            s2k.raw_iterations = data[offset]
            offset += 1
        return s2k, offset


class SignatureSubpacket(AlgoLookup):
    """A signature subpacket containing a type, type name, some flags, and
    the contained data. Known types are decoded into attributes; a body that
    does not fit its type leaves the subpacket marked as malformed."""
    CRITICAL_BIT = 0x80
    CRITICAL_MASK = 0x7f

    def __init__(self, raw, hashed, data):
        self.raw = raw
        self.subtype = raw & self.CRITICAL_MASK
        self.hashed = hashed
        self.critical = bool(raw & self.CRITICAL_BIT)
        self.length = len(data)
        self.data = bytes(data)
        self.fields = {}
        self.malformed = False
        try:
            self.parse()
        except (PgpdumpException, IndexError) as e:
            LOG.debug("Malformed subpacket type %d: %s", self.subtype, e)
            self.fields = {}
            self.malformed = True

    @property
    def name(self):
        return self.lookup_subpacket_type(self.subtype)

    def expect_length(self, length):
        if self.length != length:
            raise PgpdumpException("Subpacket type %d wants %d octets, got %d"
                                   % (self.subtype, length, self.length))

    def parse(self):
        data = self.data
        fields = self.fields
        subtype = self.subtype
        if subtype == 2:
            self.expect_length(4)
            fields['creation time'] = get_int4(data, 0)
        elif subtype in (3, 9):
            self.expect_length(4)
            fields['expiration'] = get_int4(data, 0)
        elif subtype in (4, 7, 25):
            self.expect_length(1)
            fields['flag'] = bool(data[0])
        elif subtype == 5:
            self.expect_length(2)
            fields['level'] = data[0]
            fields['amount'] = data[1]
        elif subtype in (6, 24, 26, 28):
            fields['text'] = data
        elif subtype in (11, 21, 22, 34):
            fields['algorithms'] = list(data)
        elif subtype == 12:
            self.expect_length(22)
            fields['class'] = data[0]
            fields['algorithm'] = data[1]
            fields['fingerprint'] = data[2:22]
        elif subtype == 16:
            self.expect_length(8)
            fields['issuer'] = data
        elif subtype == 20:
            # 4 flag octets, name length, value length, name, value
            name_len = get_int2(data, 4)
            value_len = get_int2(data, 6)
            self.expect_length(8 + name_len + value_len)
            fields['human'] = bool(data[0] & 0x80)
            fields['name'] = data[8:8 + name_len]
            fields['value'] = data[8 + name_len:]
        elif subtype == 23:
            fields['no-modify'] = bool(data and data[0] & 0x80)
        elif subtype == 27:
            if not data:
                raise PgpdumpException("Empty key flags subpacket")
            fields['flags'] = data[0]
        elif subtype == 29:
            if not data:
                raise PgpdumpException("Empty revocation reason subpacket")
            fields['code'] = data[0]
            fields['message'] = data[1:]
        elif subtype == 30:
            fields['features'] = data[0] if data else 0
        elif subtype == 32:
            # parsed on demand, so nesting stays under the dumper's control
            fields['signature'] = data
        elif subtype == 33:
            if self.length < 2:
                raise PgpdumpException("Short issuer fingerprint subpacket")
            fields['version'] = data[0]
            fields['fingerprint'] = data[1:]

    def __repr__(self):
        extra = ""
        if self.hashed:
            extra += "hashed, "
        if self.critical:
            extra += "critical, "
        return "<%s: %s, %slength %d>" % (
            self.__class__.__name__, self.name, extra, self.length)


def parse_subpackets(data, hashed):
    '''Split a subpacket area into SignatureSubpacket objects, in order.'''
    subpackets = []
    offset = 0
    while offset < len(data):
        # each subpacket is [variable length] [subtype] [data]
        sub_offset, sub_len, sub_part = new_tag_length(data, offset)
        if sub_part:
            raise PgpdumpException("Partial length in subpacket area")
        offset += sub_offset
        if sub_len < 1 or offset + sub_len > len(data):
            raise PgpdumpException(
                "Unexpected subpackets length: %d at offset %d" % (
                    sub_len, offset))
        subtype = data[offset]
        subpackets.append(SignatureSubpacket(
            subtype, hashed, data[offset + 1:offset + sub_len]))
        offset += sub_len
    return subpackets


# the algorithm families, as used for material names in a dump
RSA_ALGORITHMS = (1, 2, 3)
ELGAMAL_ALGORITHMS = (16, 20)
EC_ALGORITHMS = (19, 22, 99)

# opaque fixed-size key material: (family, public size, signature size)
OPAQUE_ALGORITHMS = {
    25: ("x25519", 32, None),
    26: ("x448", 56, None),
    27: ("ed25519", 32, 64),
    28: ("ed448", 57, 114),
}


class SignaturePacket(Packet, AlgoLookup):
    def __init__(self, *args, **kwargs):
        self.sig_version = None
        self.raw_sig_type = None
        self.raw_pub_algorithm = None
        self.raw_hash_algorithm = None
        self.raw_creation_time = None
        self.key_id = None
        self.hash2 = None
        self.salt = None
        self.subpackets = []
        self.material_type = None
        self.material = {}

        super(SignaturePacket, self).__init__(*args, **kwargs)

    def parse(self):
        self.sig_version = self.data[0]
        offset = 1
        if self.sig_version in (2, 3):
            # 00 01 02 03 04 05 06 07 08 09 0a 0b 0c 0d 0e 0f
            # |  |  [  ctime  ] [ key_id                 ] |
            # |  |-type                           pub_algo-|
            # |-hash material
            # 10 11 12
            # |  [hash2]
            # |-hash_algo

            # "hash material" byte must be 0x05
            if self.data[offset] != 0x05:
                raise PgpdumpException("Invalid v3 signature packet")
            offset += 1

            self.raw_sig_type = self.data[offset]
            offset += 1

            self.raw_creation_time = get_int4(self.data, offset)
            offset += 4

            self.key_id = get_bytes(self.data, offset, 8)
            offset += 8

            self.raw_pub_algorithm = self.data[offset]
            offset += 1

            self.raw_hash_algorithm = self.data[offset]
            offset += 1

        elif self.sig_version in (4, 5, 6):
            # 00 01 02 03 ... <hashedsubpackets..> <subpackets..> [hash2]
            # |  |  |-hash_algo
            # |  |-pub_algo
            # |-type
            self.raw_sig_type = self.data[offset]
            offset += 1

            self.raw_pub_algorithm = self.data[offset]
            offset += 1

            self.raw_hash_algorithm = self.data[offset]
            offset += 1

            # v6 uses four-octet subpacket area lengths
            for hashed in (True, False):
                if self.sig_version == 6:
                    length = get_int4(self.data, offset)
                    offset += 4
                else:
                    length = get_int2(self.data, offset)
                    offset += 2
                area = get_bytes(self.data, offset, length)
                self.subpackets.extend(parse_subpackets(area, hashed))
                offset += length
        else:
            raise PgpdumpException("Unsupported signature packet, version %d" %
                                   self.sig_version)

        self.hash2 = get_bytes(self.data, offset, 2)
        offset += 2

        if self.sig_version == 6:
            salt_len = self.data[offset]
            offset += 1
            self.salt = get_bytes(self.data, offset, salt_len)
            offset += salt_len

        return self.parse_material(offset)

    def parse_material(self, offset):
        alg = self.raw_pub_algorithm
        if alg in RSA_ALGORITHMS:
            self.material_type = "rsa"
            names = ('s',)
        elif alg == 17:
            self.material_type = "dsa"
            names = ('r', 's')
        elif alg in EC_ALGORITHMS or alg == 18:
            self.material_type = "ecc"
            names = ('r', 's')
        elif alg in ELGAMAL_ALGORITHMS:
            self.material_type = "eg"
            names = ('r', 's')
        elif alg in OPAQUE_ALGORITHMS and OPAQUE_ALGORITHMS[alg][2]:
            family, _, size = OPAQUE_ALGORITHMS[alg]
            self.material_type = family
            self.material['sig'] = get_bytes(self.data, offset, size)
            return offset + size
        else:
            return offset

        for name in names:
            self.material[name], offset = get_mpi(self.data, offset)
        return offset

    def subpackets_for(self, hashed):
        return [sub for sub in self.subpackets if sub.hashed == hashed]

    @property
    def sig_type(self):
        return self.lookup_sig_type(self.raw_sig_type)

    @property
    def pub_algorithm(self):
        return self.lookup_pub_algorithm(self.raw_pub_algorithm)

    @property
    def hash_algorithm(self):
        return self.lookup_hash_algorithm(self.raw_hash_algorithm)

    def __repr__(self):
        return "<%s: %s, %s, length %d>" % (
            self.__class__.__name__, self.pub_algorithm,
            self.hash_algorithm, self.length)


class PublicKeyPacket(Packet, AlgoLookup):
    def __init__(self, *args, **kwargs):
        self.pubkey_version = None
        self.raw_creation_time = None
        self.raw_days_valid = None
        self.raw_pub_algorithm = None
        self.material_length = None
        self.material_type = None
        self.material = {}
        # ecc information
        self.raw_oid = None
        self.raw_kdf_hash = None
        self.raw_kdf_wrap = None
        # end of the public part of the body
        self.pub_end = None

        super(PublicKeyPacket, self).__init__(*args, **kwargs)

    def parse(self):
        self.pubkey_version = self.data[0]
        offset = 1
        if self.pubkey_version not in (2, 3, 4, 5, 6):
            raise PgpdumpException("Unsupported public key packet, version %d" %
                                   self.pubkey_version)

        self.raw_creation_time = get_int4(self.data, offset)
        offset += 4

        if self.pubkey_version < 4:
            self.raw_days_valid = get_int2(self.data, offset)
            offset += 2

        self.raw_pub_algorithm = self.data[offset]
        offset += 1

        if self.pubkey_version >= 5:
            self.material_length = get_int4(self.data, offset)
            offset += 4
            end = offset + self.material_length
            if end > len(self.data):
                raise PgpdumpException("Key material length %d exceeds packet"
                                       % self.material_length)
            self.parse_key_material(offset)
            offset = end
        else:
            offset = self.parse_key_material(offset)

        self.pub_end = offset
        return offset

    def parse_key_material(self, offset):
        alg = self.raw_pub_algorithm
        if alg in RSA_ALGORITHMS:
            self.material_type = "rsa"
            names = ('n', 'e')
        elif alg == 17:
            self.material_type = "dsa"
            names = ('p', 'q', 'g', 'y')
        elif alg in ELGAMAL_ALGORITHMS:
            self.material_type = "eg"
            names = ('p', 'g', 'y')
        elif alg in EC_ALGORITHMS:
            self.material_type = "ecc"
            offset = self.parse_oid_data(offset)
            names = ('p',)
        elif alg == 18:
            self.material_type = "ecdh"
            offset = self.parse_oid_data(offset)
            self.material['p'], offset = get_mpi(self.data, offset)
            return self.parse_kdf(offset)
        elif alg in OPAQUE_ALGORITHMS:
            family, size, _ = OPAQUE_ALGORITHMS[alg]
            self.material_type = family
            self.material['pub'] = get_bytes(self.data, offset, size)
            return offset + size
        elif self.pubkey_version >= 5 or self.raw in (6, 14):
            # the public part still has a known end
            return len(self.data)
        else:
            raise PgpdumpException("Unsupported public key algorithm %d" % alg)

        for name in names:
            self.material[name], offset = get_mpi(self.data, offset)
        return offset

    def parse_oid_data(self, offset):
        # see https://tools.ietf.org/html/rfc6637#section-9
        oid_length = self.data[offset]
        offset += 1
        if oid_length in (0, 0xff):
            raise PgpdumpException("Reserved curve OID length %d" % oid_length)

        self.raw_oid = get_hex_data(self.data, offset, oid_length)
        return offset + oid_length

    def parse_kdf(self, offset):
        # see https://tools.ietf.org/html/rfc6637#section-9
        kdf_length = self.data[offset]
        if kdf_length < 3:
            raise PgpdumpException("Short KDF parameters: %d" % kdf_length)
        offset += 1
        offset += 1  # reserved for future extensions

        self.raw_kdf_hash = self.data[offset]
        offset += 1

        self.raw_kdf_wrap = self.data[offset]
        offset += 1

        return offset

    @property
    def curve(self):
        return self.lookup_curve(self.raw_oid)

    @property
    def pub_algorithm(self):
        return self.lookup_pub_algorithm(self.raw_pub_algorithm)

    def fingerprint(self):
        '''Returns the fingerprint bytes, see
        https://tools.ietf.org/html/rfc4880#section-12.2'''
        version = self.pubkey_version
        public = self.data[:self.pub_end]
        if version < 4:
            if self.material_type != "rsa":
                raise PgpdumpException("Invalid non-RSA v%d public key" %
                                       version)
            md5 = hashlib.md5()
            md5.update(self.material['n'].raw)
            md5.update(self.material['e'].raw)
            return md5.digest()
        if version == 4:
            sha1 = hashlib.sha1()
            sha1.update(bytes((0x99, len(public) >> 8, len(public) & 0xff)))
            sha1.update(public)
            return sha1.digest()
        sha256 = hashlib.sha256()
        sha256.update(bytes((0x9a if version == 5 else 0x9b,)))
        sha256.update(len(public).to_bytes(4, 'big'))
        sha256.update(public)
        return sha256.digest()

    def key_id(self):
        version = self.pubkey_version
        if version < 4:
            if self.material_type != "rsa":
                raise PgpdumpException("Invalid non-RSA v%d public key" %
                                       version)
            modulus = self.material['n'].raw
            if len(modulus) < 8:
                raise PgpdumpException("RSA modulus too short for a key id")
            return modulus[-8:]
        if version == 4:
            return self.fingerprint()[12:]
        return self.fingerprint()[:8]

    def grip(self):
        '''The 20-byte keygrip as computed by libgcrypt: a SHA1 over the
        canonical public parameters.'''
        sha1 = hashlib.sha1()
        if self.material_type == "rsa":
            sha1.update(self._signed_bytes(self.material['n']))
            return sha1.digest()
        if self.material_type == "dsa":
            names = ('p', 'q', 'g', 'y')
        elif self.material_type == "eg":
            names = ('p', 'g', 'y')
        else:
            raise PgpdumpException("No keygrip support for %s" %
                                   self.pub_algorithm)
        for name in names:
            value = self._signed_bytes(self.material[name])
            sha1.update(b'(1:%s%d:' % (name.encode('ascii'), len(value)))
            sha1.update(value)
            sha1.update(b')')
        return sha1.digest()

    @staticmethod
    def _signed_bytes(mpi):
        value = get_int_bytes(mpi.value)
        if value[0] & 0x80:
            value = b'\x00' + value
        return value

    def __repr__(self):
        return "<%s: v%s, %s, length %d>" % (
            self.__class__.__name__, self.pubkey_version,
            self.pub_algorithm, self.length)


class PublicSubkeyPacket(PublicKeyPacket):
    """A Public-Subkey packet (tag 14) has exactly the same format as a
    Public-Key packet, but denotes a subkey."""
    pass


class SecretKeyPacket(PublicKeyPacket):
    '''Only the layout of the protected part is parsed: usage, cipher,
    string-to-key and IV. The secret material itself is only measured.'''
    USAGE_AEAD = 253
    USAGE_CHECKSUM = 254
    USAGE_CFB = 255

    def __init__(self, *args, **kwargs):
        self.s2k_usage = None
        self.s2k_length = None
        self.raw_sym_algorithm = None
        self.raw_aead_algorithm = None
        self.s2k = None
        self.iv = None
        self.secret_length = None
        self.secret_data_length = None

        super(SecretKeyPacket, self).__init__(*args, **kwargs)

    @property
    def encrypted(self):
        return self.s2k_usage in (self.USAGE_CHECKSUM, self.USAGE_CFB)

    def parse(self):
        # parse the public part
        offset = super(SecretKeyPacket, self).parse()
        version = self.pubkey_version

        # parse secret-key packet format from section 5.5.3
        self.s2k_usage = self.data[offset]
        offset += 1

        end = len(self.data)
        if version == 5 or (version == 6 and self.s2k_usage):
            self.s2k_length = self.data[offset]
            offset += 1
            end = offset + self.s2k_length

        if self.s2k_usage in (self.USAGE_CHECKSUM, self.USAGE_CFB,
                              self.USAGE_AEAD):
            self.raw_sym_algorithm = self.data[offset]
            offset += 1
            if self.s2k_usage == self.USAGE_AEAD:
                self.raw_aead_algorithm = self.data[offset]
                offset += 1
            if version == 6:
                # count of the s2k specifier octets
                offset += 1
            self.s2k, offset = S2K.parse(self.data, offset, end)
        elif self.s2k_usage:
            # legacy: the usage octet is the cipher, keyed by MD5 of the
            # passphrase
            self.raw_sym_algorithm = self.s2k_usage

        if self.s2k_usage and not (self.s2k and self.s2k.is_experimental):
            if self.s2k_usage == self.USAGE_AEAD:
                iv_len = self.lookup_aead_nonce_size(self.raw_aead_algorithm)
            else:
                iv_len = self.lookup_sym_block_size(self.raw_sym_algorithm)
            if iv_len:
                self.iv = get_bytes(self.data, offset, iv_len)
                offset += iv_len
            else:
                LOG.debug("Unknown IV size for symmetric algorithm %d",
                          self.raw_sym_algorithm)

        if version == 5:
            self.secret_data_length = get_int4(self.data, offset)
            offset += 4

        self.secret_length = len(self.data) - offset
        return len(self.data)


class SecretSubkeyPacket(SecretKeyPacket):
    '''A Secret-Subkey packet (tag 7) has exactly the same format as a
    Secret-Key packet, but denotes a subkey.'''
    pass


class UserIDPacket(Packet):
    '''A User ID packet consists of UTF-8 text that is intended to represent
    the name and email address of the key holder. The bytes are kept as
    they are; a dump shows them unchanged.'''

    def parse(self):
        self.user = self.data
        return self.length


class UserAttributePacket(Packet):
    def parse(self):
        self.attribute = self.data
        return self.length


class PublicKeyEncryptedSessionKeyPacket(Packet, AlgoLookup):
    def __init__(self, *args, **kwargs):
        self.session_key_version = None
        self.key_id = None
        self.key_version = None
        self.fingerprint = None
        self.raw_pub_algorithm = None
        self.material_type = None
        self.material = {}
        super(PublicKeyEncryptedSessionKeyPacket, self).__init__(
            *args, **kwargs)

    def parse(self):
        self.session_key_version = self.data[0]
        offset = 1
        if self.session_key_version == 3:
            self.key_id = get_bytes(self.data, offset, 8)
            offset += 8
        elif self.session_key_version == 6:
            # a zero count denotes an anonymous recipient
            count = self.data[offset]
            offset += 1
            if count:
                self.key_version = self.data[offset]
                self.fingerprint = get_bytes(self.data, offset + 1, count - 1)
            offset += count
        else:
            raise PgpdumpException(
                "Unsupported encrypted session key packet, version %d" %
                self.session_key_version)

        self.raw_pub_algorithm = self.data[offset]
        offset += 1
        return self.parse_material(offset)

    def parse_material(self, offset):
        alg = self.raw_pub_algorithm
        if alg in RSA_ALGORITHMS:
            self.material_type = "rsa"
            names = ('m',)
        elif alg in ELGAMAL_ALGORITHMS:
            self.material_type = "eg"
            names = ('g', 'm')
        elif alg == 99:
            self.material_type = "sm2"
            names = ('m',)
        elif alg == 18:
            self.material_type = "ecdh"
            self.material['p'], offset = get_mpi(self.data, offset)
            mlen = self.data[offset]
            self.material['m'] = get_bytes(self.data, offset + 1, mlen)
            return offset + 1 + mlen
        elif alg in (25, 26):
            family, size, _ = OPAQUE_ALGORITHMS[alg]
            self.material_type = family
            self.material['ephemeral'] = get_bytes(self.data, offset, size)
            offset += size
            klen = self.data[offset]
            self.material['key'] = get_bytes(self.data, offset + 1, klen)
            return offset + 1 + klen
        else:
            return offset

        for name in names:
            self.material[name], offset = get_mpi(self.data, offset)
        return offset

    def __repr__(self):
        return "<%s: %s (%s), length %d>" % (
            self.__class__.__name__, self.key_id,
            self.lookup_pub_algorithm(self.raw_pub_algorithm), self.length)


class SymmetricKeyEncryptedSessionKeyPacket(Packet, AlgoLookup):
    def __init__(self, *args, **kwargs):
        self.session_key_version = None
        self.raw_sym_algorithm = None
        self.raw_aead_algorithm = None
        self.s2k = None
        self.iv = None
        self.encrypted_key = None
        super(SymmetricKeyEncryptedSessionKeyPacket, self).__init__(
            *args, **kwargs)

    @property
    def aead(self):
        return self.session_key_version in (5, 6)

    def parse(self):
        self.session_key_version = self.data[0]
        offset = 1
        if self.session_key_version not in (4, 5, 6):
            raise PgpdumpException(
                "Unsupported symmetric session key packet, version %d" %
                self.session_key_version)
        if self.session_key_version == 6:
            # count of the following algorithm, s2k and iv fields
            offset += 1

        self.raw_sym_algorithm = self.data[offset]
        offset += 1
        if self.aead:
            self.raw_aead_algorithm = self.data[offset]
            offset += 1
        if self.session_key_version == 6:
            offset += 1

        self.s2k, offset = S2K.parse(self.data, offset)

        if self.aead:
            iv_len = self.lookup_aead_nonce_size(self.raw_aead_algorithm)
            if not iv_len:
                raise PgpdumpException("Unknown AEAD algorithm %d" %
                                       self.raw_aead_algorithm)
            self.iv = get_bytes(self.data, offset, iv_len)
            offset += iv_len

        self.encrypted_key = self.data[offset:]
        return self.length


class OnePassSignaturePacket(Packet, AlgoLookup):
    def __init__(self, *args, **kwargs):
        self.version = None
        self.raw_sig_type = None
        self.raw_hash_algorithm = None
        self.raw_pub_algorithm = None
        self.key_id = None
        self.salt = None
        self.fingerprint = None
        self.nested = None
        super(OnePassSignaturePacket, self).__init__(*args, **kwargs)

    def parse(self):
        self.version = self.data[0]
        if self.version not in (3, 6):
            raise PgpdumpException(
                "Unsupported one-pass signature packet, version %d" %
                self.version)
        self.raw_sig_type = self.data[1]
        self.raw_hash_algorithm = self.data[2]
        self.raw_pub_algorithm = self.data[3]
        offset = 4
        if self.version == 3:
            self.key_id = get_bytes(self.data, offset, 8)
            offset += 8
        else:
            salt_len = self.data[offset]
            offset += 1
            self.salt = get_bytes(self.data, offset, salt_len)
            offset += salt_len
            self.fingerprint = get_bytes(self.data, offset, 32)
            offset += 32
        # "nested" is the inverse of the last-packet flag
        self.nested = not self.data[offset]
        return offset + 1


class MarkerPacket(Packet):
    def parse(self):
        self.valid = self.data == MARKER_CONTENTS
        return self.length


class CompressedDataPacket(object):
    '''Only the algorithm octet is read; the rest of the body is handed on
    for decompression.'''

    def __init__(self, raw_compression_algo):
        self.raw_compression_algo = raw_compression_algo

    @classmethod
    def from_source(cls, body):
        return cls(body.read_exact(1)[0])

    def decompressed(self, body):
        return DecompressedSource(body, self.raw_compression_algo)

    def __repr__(self):
        return "<%s: Algo %s>" % (
            self.__class__.__name__, self.raw_compression_algo)


class LiteralDataPacket(object):
    def __init__(self, data_format, filename, timestamp):
        self.data_format = data_format
        self.filename = filename
        self.timestamp = timestamp

    @classmethod
    def from_source(cls, body):
        '''Reads the literal header (format, filename, date), leaving the
        contents in body.'''
        data_format, name_len = body.read_exact(2)
        filename = body.read_exact(name_len)
        timestamp = get_int4(body.read_exact(4), 0)
        return cls(bytes((data_format,)), filename, timestamp)


class AEADEncryptedDataPacket(AlgoLookup):
    '''The cleartext header of an AEAD encrypted data packet, see
    https://datatracker.ietf.org/doc/html/draft-ietf-openpgp-rfc4880bis-10#section-5.16'''

    def __init__(self, data):
        self.version = data[0]
        if self.version != 1:
            raise PgpdumpException("Unsupported AEAD packet version %d" %
                                   self.version)
        self.raw_sym_algorithm = data[1]
        self.raw_aead_algorithm = data[2]
        self.chunk_size = data[3]
        iv_len = self.lookup_aead_nonce_size(self.raw_aead_algorithm)
        if not iv_len:
            raise PgpdumpException("Unknown AEAD algorithm %d" %
                                   self.raw_aead_algorithm)
        self.iv = get_bytes(data, 4, iv_len)

    @classmethod
    def from_source(cls, body):
        '''Parses the header out of a private copy of the first bytes of
        body, leaving the ciphertext where it is.'''
        header = BinaryData(body.peek(AEAD_HEADER_PEEK))
        try:
            return cls(header.read(AEAD_HEADER_PEEK))
        except IndexError:
            raise PgpdumpException("failed to read AEAD header")


PACKET_TYPES = {
    1: PublicKeyEncryptedSessionKeyPacket,
    2: SignaturePacket,
    3: SymmetricKeyEncryptedSessionKeyPacket,
    4: OnePassSignaturePacket,
    5: SecretKeyPacket,
    6: PublicKeyPacket,
    7: SecretSubkeyPacket,
    10: MarkerPacket,
    13: UserIDPacket,
    14: PublicSubkeyPacket,
    17: UserAttributePacket,
}


def construct_packet(header, data):
    '''Build the packet object for a fully read, non-streamed packet body.'''
    PacketType = PACKET_TYPES.get(header.tag, Packet)
    return PacketType(header.tag, header.new, data)
