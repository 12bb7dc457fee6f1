from cryptography.hazmat.decrepit.ciphers import algorithms as decrepit
from cryptography.hazmat.primitives.ciphers import algorithms


TAG_NAMES = {
    0: "Reserved",
    1: "Public-Key Encrypted Session Key",
    2: "Signature",
    3: "Symmetric-Key Encrypted Session Key",
    4: "One-Pass Signature",
    5: "Secret Key",
    6: "Public Key",
    7: "Secret Subkey",
    8: "Compressed Data",
    9: "Symmetrically Encrypted Data",
    10: "Marker",
    11: "Literal Data",
    12: "Trust",
    13: "User ID",
    14: "Public Subkey",
    15: "reserved2",
    16: "reserved3",
    17: "User Attribute",
    18: "Symmetric Encrypted and Integrity Protected Data",
    19: "Modification Detection Code",
    20: "AEAD Encrypted Data Packet",
}

KEY_TYPES = {
    5: "Secret key",
    6: "Public key",
    7: "Secret subkey",
    14: "Public subkey",
}

SIG_TYPES = {
    0x00: "Signature of a binary document",
    0x01: "Signature of a canonical text document",
    0x02: "Standalone signature",
    0x10: "Generic User ID certification",
    0x11: "Personal User ID certification",
    0x12: "Casual User ID certification",
    0x13: "Positive User ID certification",
    0x18: "Subkey Binding Signature",
    0x19: "Primary Key Binding Signature",
    0x1f: "Direct-key signature",
    0x20: "Key revocation signature",
    0x28: "Subkey revocation signature",
    0x30: "Certification revocation signature",
    0x40: "Timestamp signature",
    0x50: "Third-Party Confirmation signature",
}

SUBPACKET_TYPES = {
    2: "signature creation time",
    3: "signature expiration time",
    4: "exportable certification",
    5: "trust signature",
    6: "regular expression",
    7: "revocable",
    9: "key expiration time",
    11: "preferred symmetric algorithms",
    12: "revocation key",
    16: "issuer key ID",
    20: "notation data",
    21: "preferred hash algorithms",
    22: "preferred compression algorithms",
    23: "key server preferences",
    24: "preferred key server",
    25: "primary user ID",
    26: "policy URI",
    27: "key flags",
    28: "signer's user ID",
    29: "reason for revocation",
    30: "features",
    31: "signature target",
    32: "embedded signature",
    33: "issuer fingerprint",
    34: "preferred AEAD algorithms",
}

REVOCATION_REASONS = {
    0: "No reason",
    1: "Superseded",
    2: "Compromised",
    3: "Retired",
    32: "No longer valid",
}

COMPRESSION_ALGORITHMS = {
    0: "Uncompressed",
    1: "ZIP",
    2: "ZLib",
    3: "BZip2",
}

# (Name, nonce length)
AEAD_ALGORITHMS = {
    0: ("None", 0),
    1: ("EAX", 16),
    2: ("OCB", 15),
}

# raw oid: curve name
CURVE_OIDS = {
    '2a8648ce3d030107': "NIST P-256",
    '2b81040022': "NIST P-384",
    '2b81040023': "NIST P-521",
    '2b06010401da470f01': "Ed25519",
    '2b060104019755010501': "Curve25519",
    '2b2403030208010107': "brainpoolP256r1",
    '2b240303020801010b': "brainpoolP384r1",
    '2b240303020801010d': "brainpoolP512r1",
    '2b8104000a': "secp256k1",
    '2a811ccf5501822d': "SM2 P-256",
}

# key flags octet, in display order
KEY_FLAGS = (
    (0x01, "certify"),
    (0x02, "sign"),
    (0x04, "encrypt_comm"),
    (0x08, "encrypt_storage"),
    (0x10, "split"),
    (0x20, "auth"),
    (0x80, "shared"),
)

FEATURES = (
    (0x01, "mdc"),
    (0x02, "aead"),
    (0x04, "v5 keys"),
    (0x08, "SEIPD v2"),
)


class AlgoLookup(object):
    """Mixin class containing algorithm lookup methods."""
    pub_algorithms = {
        1: "RSA (Encrypt or Sign)",
        2: "RSA (Encrypt-Only)",
        3: "RSA (Sign-Only)",
        16: "Elgamal (Encrypt-Only)",
        17: "DSA",
        18: "ECDH",
        19: "ECDSA",
        20: "Elgamal",
        21: "Reserved for DH (X9.42)",
        22: "EdDSA",
        25: "X25519",
        26: "X448",
        27: "Ed25519",
        28: "Ed448",
        99: "SM2",
    }

    @classmethod
    def lookup_pub_algorithm(cls, alg):
        return cls.pub_algorithms.get(alg, "Unknown")

    hash_algorithms = {
        1: "MD5",
        2: "SHA1",
        3: "RIPEMD160",
        8: "SHA256",
        9: "SHA384",
        10: "SHA512",
        11: "SHA224",
        12: "SHA3-256",
        14: "SHA3-512",
        105: "SM3",
    }

    @classmethod
    def lookup_hash_algorithm(cls, alg):
        return cls.hash_algorithms.get(alg, "Unknown")

    sym_algorithms = {
        # (Name, class of cryptography lib)
        0: ("Plaintext", None),
        1: ("IDEA", decrepit.IDEA),
        2: ("TripleDES", decrepit.TripleDES),
        3: ("CAST5", decrepit.CAST5),
        4: ("Blowfish", decrepit.Blowfish),
        7: ("AES-128", algorithms.AES),
        8: ("AES-192", algorithms.AES),
        9: ("AES-256", algorithms.AES),
        10: ("Twofish", None),  # not supported by cryptography
        11: ("Camellia-128", decrepit.Camellia),
        12: ("Camellia-192", decrepit.Camellia),
        13: ("Camellia-256", decrepit.Camellia),
        105: ("SM4", algorithms.SM4),
    }
    TWOFISH_BLOCK_SIZE = 16

    @classmethod
    def _lookup_sym_algorithm(cls, alg):
        return cls.sym_algorithms.get(alg, ("Unknown", None))

    @classmethod
    def lookup_sym_algorithm(cls, alg):
        return cls._lookup_sym_algorithm(alg)[0]

    @classmethod
    def lookup_sym_block_size(cls, alg):
        '''Block size in bytes, which is also the CFB IV length. 0 when the
        algorithm is unknown.'''
        if alg == 10:
            return cls.TWOFISH_BLOCK_SIZE
        cipher = cls._lookup_sym_algorithm(alg)[1]
        if cipher is None:
            return 0
        return cipher.block_size // 8

    @classmethod
    def lookup_aead_algorithm(cls, alg):
        return AEAD_ALGORITHMS.get(alg, ("Unknown", 0))[0]

    @classmethod
    def lookup_aead_nonce_size(cls, alg):
        return AEAD_ALGORITHMS.get(alg, ("Unknown", 0))[1]

    @classmethod
    def lookup_compression_algorithm(cls, alg):
        return COMPRESSION_ALGORITHMS.get(alg, "Unknown")

    @classmethod
    def lookup_sig_type(cls, sig_type):
        return SIG_TYPES.get(sig_type, "Unknown")

    @classmethod
    def lookup_subpacket_type(cls, subtype):
        return SUBPACKET_TYPES.get(subtype, "Unknown")

    @classmethod
    def lookup_revocation_reason(cls, code):
        return REVOCATION_REASONS.get(code, "Unknown")

    @classmethod
    def lookup_tag(cls, tag):
        return TAG_NAMES.get(tag, "Unknown")

    @classmethod
    def lookup_key_type(cls, tag):
        return KEY_TYPES.get(tag, "Unknown")

    @classmethod
    def lookup_curve(cls, oid):
        return CURVE_OIDS.get(oid, "unknown")
