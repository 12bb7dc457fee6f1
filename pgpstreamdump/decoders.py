import logging

from .fields import DumpNode, AlgField, TextField
from .lookup import AlgoLookup, KEY_FLAGS, FEATURES
from .packet import (construct_packet, SignaturePacket, SecretKeyPacket,
                     CompressedDataPacket, LiteralDataPacket,
                     AEADEncryptedDataPacket, MARKER_CONTENTS, S2K)
from .utils import PgpdumpException


LOG = logging.getLogger(__name__)

LITERAL_CHUNK = 16384
# subpacket types whose text label differs from the type name
SUBPACKET_LABELS = {
    34: "preferred aead algorithms",
}
LAYERS_NOTICE = ":too many OpenPGP packet layers, stopping."


class PacketDecoders(AlgoLookup):
    '''Per-tag decoders. Each fills the DumpNode it is handed from the body
    source of one packet; fields added before a failure stay in the node.
    Mixed into the dumper, which owns dispatch and the bounds.'''

    def read_body(self, ctx, body):
        return body.read_all(ctx.config.max_packet_size)

    def dump_signature(self, ctx, header, body, node):
        node.title = "Signature packet"
        sig = construct_packet(header, self.read_body(ctx, body))
        self.signature_fields(ctx, sig, node)

    def signature_fields(self, ctx, sig, node):
        config = ctx.config
        node.value('version', sig.sig_version)
        node.alg('type', sig.raw_sig_type, self.lookup_sig_type)
        if sig.sig_version < 4:
            node.time('creation time', sig.raw_creation_time)
            node.hex('signing key id', sig.key_id, key='signer')
        node.alg('public key algorithm', sig.raw_pub_algorithm,
                 self.lookup_pub_algorithm, key='algorithm')
        node.alg('hash algorithm', sig.raw_hash_algorithm,
                 self.lookup_hash_algorithm)

        if sig.sig_version >= 4:
            subpackets = [(sub.hashed, self.subpacket_node(ctx, sub))
                          for sub in sig.subpackets]
            node.nodes('hashed subpackets',
                       [sub for hashed, sub in subpackets if hashed],
                       json=False)
            node.nodes('unhashed subpackets',
                       [sub for hashed, sub in subpackets if not hashed],
                       json=False)
            node.nodes(None, [sub for _, sub in subpackets],
                       key='subpackets', text=False)

        node.hex('lbits', sig.hash2)
        if sig.salt is not None:
            node.hex('salt', sig.salt, count=True)

        material = DumpNode()
        kind = sig.material_type
        if kind is None:
            material.line("unknown algorithm")
        elif 'sig' in sig.material:
            material.vec("%s sig" % kind, sig.material['sig'],
                         config.dump_mpi)
        else:
            for name, mpi in sig.material.items():
                material.mpi("%s %s" % (kind, name), mpi, name,
                             config.dump_mpi)
        node.node('signature material', material, key='material')

    def subpacket_node(self, ctx, sub):
        """One subpacket: a header line with type, length and criticality,
        its raw contents when dumping packets, then the decoded fields at
        the same level."""
        config = ctx.config
        node = DumpNode()
        critical = ", critical" if sub.critical else ""
        node.line(":type %d, len %d%s" % (sub.subtype, sub.length, critical))
        node.alg('type', sub.subtype, self.lookup_subpacket_type, text=False)
        node.value('length', sub.length, text=False)
        node.value('hashed', sub.hashed, text=False)
        node.value('critical', sub.critical, text=False)
        if config.dump_packets:
            node.hexdump(":subpacket contents:", sub.data)

        name = SUBPACKET_LABELS.get(sub.subtype, sub.name)
        fields = sub.fields
        subtype = sub.subtype
        if sub.malformed or not fields:
            if not config.dump_packets:
                node.hexdump(None, sub.data)
        elif subtype == 2:
            node.time(name, fields['creation time'], key='creation time')
        elif subtype == 3:
            node.expiration(name, fields['expiration'],
                            key='expiration time')
        elif subtype == 9:
            node.expiration(name, fields['expiration'],
                            key='key expiration')
        elif subtype in (4, 7, 25):
            key = {4: 'exportable', 7: 'revocable', 25: 'primary'}[subtype]
            node.value(name, fields['flag'], key=key)
        elif subtype == 5:
            node.line("%s: amount %d, level %d" % (
                name, fields['amount'], fields['level']))
            node.value('amount', fields['amount'], text=False)
            node.value('level', fields['level'], text=False)
        elif subtype in (6, 24, 26, 28):
            key = {6: 'regexp', 24: 'uri', 26: 'uri', 28: 'uid'}[subtype]
            node.text(name, fields['text'], key=key)
        elif subtype in (11, 21, 22, 34):
            lookup = {
                11: self.lookup_sym_algorithm,
                21: self.lookup_hash_algorithm,
                22: self.lookup_compression_algorithm,
                34: self.lookup_aead_algorithm,
            }[subtype]
            node.algs(name, fields['algorithms'], lookup, key='algorithms')
        elif subtype == 12:
            node.line(name)
            node.value('class', fields['class'])
            node.alg('public key algorithm', fields['algorithm'],
                     self.lookup_pub_algorithm, key='algorithm')
            node.hex('fingerprint', fields['fingerprint'], count=True)
        elif subtype == 16:
            node.hex(name, fields['issuer'], key='issuer keyid')
        elif subtype == 20:
            self.notation_fields(name, fields, node)
        elif subtype == 23:
            node.line(name)
            node.value('no-modify', fields['no-modify'])
        elif subtype == 27:
            node.flags(name, fields['flags'], KEY_FLAGS, key='flags',
                       none_label="none")
        elif subtype == 29:
            node.alg(name, fields['code'], self.lookup_revocation_reason,
                     key='code')
            node.text('message', fields['message'])
        elif subtype == 30:
            node.flags(name, fields['features'], FEATURES, split=True)
        elif subtype == 32:
            self.embedded_signature(ctx, name, fields['signature'], node)
        elif subtype == 33:
            node.hex(name, fields['fingerprint'], key='fingerprint',
                     count=True)
        return node

    def notation_fields(self, name, fields, node):
        node.value('human', fields['human'], text=False)
        node.text('name', fields['name'], text=False)
        prefix = b"%s: %s = " % (name.encode('utf-8'), fields['name'])
        value = fields['value']
        if fields['human']:
            node.line(prefix + value)
            node.add(TextField('value', value, text=False))
        else:
            node.line(prefix + b"0x%s (%d bytes)" % (
                value.hex().encode('ascii'), len(value)))
            node.hex('value', value, text=False)

    def embedded_signature(self, ctx, name, data, node):
        '''Embedded signatures count as a nesting layer of their own.'''
        ctx.layers += 1
        try:
            if ctx.layers > ctx.config.max_layers:
                LOG.warning("Too many nested layers at an embedded signature")
                node.line(LAYERS_NOTICE)
                return
            sig_node = DumpNode()
            try:
                sig = SignaturePacket(2, True, data)
            except PgpdumpException as e:
                LOG.warning("Failed to parse embedded signature: %s", e)
                sig_node.line("failed to parse")
                node.node(name, sig_node, json=False)
                return
            self.signature_fields(ctx, sig, sig_node)
            node.node(name, sig_node, key='signature')
        finally:
            ctx.layers -= 1

    def dump_key(self, ctx, header, body, node):
        config = ctx.config
        node.title = "%s packet" % self.lookup_key_type(header.tag)
        key = construct_packet(header, self.read_body(ctx, body))
        version = key.pubkey_version

        node.value('version', version)
        node.time('creation time', key.raw_creation_time)
        if version < 4:
            node.value('v3 validity days', key.raw_days_valid, key='v3 days')
        node.alg('public key algorithm', key.raw_pub_algorithm,
                 self.lookup_pub_algorithm, key='algorithm')
        if key.material_length is not None:
            node.value('v%d public key material length' % version,
                       key.material_length)
        node.node('public key material', self.key_material(ctx, key),
                  key='material')

        if isinstance(key, SecretKeyPacket):
            node.node('secret key material', self.secret_material(ctx, key),
                      key='material')

        try:
            node.hex('keyid', key.key_id())
        except PgpdumpException as e:
            LOG.warning("Key id calculation failed: %s", e)
            node.line("keyid: failed to calculate")

        if config.dump_grips:
            for name, method in (('fingerprint', key.fingerprint),
                                 ('grip', key.grip)):
                try:
                    node.hex(name, method())
                except PgpdumpException as e:
                    LOG.warning("Key %s calculation failed: %s", name, e)
                    node.line("%s: failed to calculate" % name)

    def key_material(self, ctx, key):
        contents = ctx.config.dump_mpi
        material = DumpNode()
        kind = key.material_type
        if kind is None:
            material.line("unknown public key algorithm")
        elif 'pub' in key.material:
            material.vec(kind, key.material['pub'], contents)
        else:
            for name, mpi in key.material.items():
                material.mpi("%s %s" % (kind, name), mpi, name, contents)
        if kind in ("ecc", "ecdh"):
            material.value('%s curve' % kind, key.curve, key='curve')
        if kind == "ecdh":
            material.alg('ecdh hash algorithm', key.raw_kdf_hash,
                         self.lookup_hash_algorithm, key='hash algorithm')
            material.line("ecdh key wrap algorithm: %d" % key.raw_kdf_wrap)
            material.add(AlgField('key wrap algorithm', key.raw_kdf_wrap,
                                  self.lookup_sym_algorithm, text=False))
        return material

    def secret_material(self, ctx, key):
        material = DumpNode()
        material.value('s2k usage', key.s2k_usage)
        if key.s2k_length is not None:
            material.value('v%d s2k length' % key.pubkey_version,
                           key.s2k_length)
        if key.raw_sym_algorithm is not None:
            material.alg('symmetric algorithm', key.raw_sym_algorithm,
                         self.lookup_sym_algorithm)
        if key.raw_aead_algorithm is not None:
            material.alg('aead algorithm', key.raw_aead_algorithm,
                         self.lookup_aead_algorithm)
        if key.s2k is not None:
            material.node(None, self.s2k_node(key.s2k), key='s2k')
        if key.s2k_usage and not (key.s2k and key.s2k.is_experimental):
            if key.iv is not None:
                material.hex('cipher iv', key.iv, count=True)
            else:
                material.line("cipher iv: unknown algorithm")
        if key.secret_data_length is not None:
            material.value('v5 secret key data length',
                           key.secret_data_length)
        state = "encrypted" if key.s2k_usage else "cleartext"
        material.line("%s secret key data: %d bytes" % (
            state, key.secret_length))
        return material

    def s2k_node(self, s2k):
        '''String-to-key lines. The text form sits inline in its parent;
        the JSON form is a separate "s2k" object.'''
        node = DumpNode()
        node.value('s2k specifier', s2k.specifier, key='specifier')
        if s2k.is_experimental and s2k.gpg_ext_num:
            node.value('GPG extension num', s2k.gpg_ext_num,
                       key='gpg extension')
            if s2k.gpg_ext_num == S2K.GPG_SMARTCARD:
                node.hex('card serial number', s2k.gpg_serial[:16],
                         count=True)
            return node
        if s2k.is_experimental:
            node.hex('Unknown experimental s2k', s2k.experimental,
                     key='unknown experimental', count=True)
            return node
        node.alg('s2k hash algorithm', s2k.raw_hash_algorithm,
                 self.lookup_hash_algorithm, key='hash algorithm')
        if s2k.salt is not None:
            node.hex('s2k salt', s2k.salt, key='salt')
        if s2k.raw_iterations is not None:
            node.line("s2k iterations: %d (encoded as %d)" % (
                s2k.iterations, s2k.raw_iterations))
            node.value('iterations', s2k.iterations, text=False)
        return node

    def dump_userid(self, ctx, header, body, node):
        if header.tag == 13:
            node.title = "UserID packet"
            uid = construct_packet(header, self.read_body(ctx, body))
            node.text('id', uid.user, key='userid')
        else:
            node.title = "UserAttr packet"
            attr = construct_packet(header, self.read_body(ctx, body))
            node.line("id: (%d bytes of data)" % len(attr.attribute))
            node.hex('userattr', attr.attribute, text=False)

    def dump_pk_session_key(self, ctx, header, body, node):
        contents = ctx.config.dump_mpi
        node.title = "Public-key encrypted session key packet"
        pkesk = construct_packet(header, self.read_body(ctx, body))
        node.value('version', pkesk.session_key_version)
        if pkesk.session_key_version == 3:
            node.hex('key id', pkesk.key_id, key='keyid')
        else:
            node.hex('fingerprint', pkesk.fingerprint or b'', count=True)
        node.alg('public key algorithm', pkesk.raw_pub_algorithm,
                 self.lookup_pub_algorithm, key='algorithm')

        material = DumpNode()
        kind = pkesk.material_type
        if kind is None:
            material.line("unknown public key algorithm")
        elif kind == "ecdh":
            material.mpi('ecdh p', pkesk.material['p'], 'p', contents)
            wrapped = pkesk.material['m']
            if contents:
                material.hex('ecdh m', wrapped, key='m', count=True)
            else:
                material.line("ecdh m: %d bytes" % len(wrapped))
            material.value('m.bytes', len(wrapped), text=False)
        elif kind in ("x25519", "x448"):
            material.vec('%s ephemeral public key' % kind,
                         pkesk.material['ephemeral'], contents)
            material.vec('%s encrypted session key' % kind,
                         pkesk.material['key'], contents)
        else:
            for name, mpi in pkesk.material.items():
                material.mpi("%s %s" % (kind, name), mpi, name, contents)
        node.node('encrypted material', material, key='material')

    def dump_sk_session_key(self, ctx, header, body, node):
        node.title = "Symmetric-key encrypted session key packet"
        skesk = construct_packet(header, self.read_body(ctx, body))
        node.value('version', skesk.session_key_version)
        node.alg('symmetric algorithm', skesk.raw_sym_algorithm,
                 self.lookup_sym_algorithm, key='algorithm')
        if skesk.aead:
            node.alg('aead algorithm', skesk.raw_aead_algorithm,
                     self.lookup_aead_algorithm)
        node.node(None, self.s2k_node(skesk.s2k), key='s2k')
        if skesk.aead:
            node.hex('aead iv', skesk.iv, count=True)
        node.hex('encrypted key', skesk.encrypted_key, count=True)

    def dump_encrypted(self, ctx, header, body, node):
        if header.tag == 9:
            node.line("Symmetrically-encrypted data packet")
            node.line("")
            return
        if header.tag == 18:
            node.line("Symmetrically-encrypted integrity protected data "
                      "packet")
            node.line("")
            return

        node.title = "AEAD-encrypted data packet"
        try:
            aead = AEADEncryptedDataPacket.from_source(body)
        except PgpdumpException as e:
            node.line("ERROR: failed to read AEAD header")
            ctx.fail("AEAD header: %s" % e)
            return
        node.value('version', aead.version)
        node.alg('symmetric algorithm', aead.raw_sym_algorithm,
                 self.lookup_sym_algorithm, key='algorithm')
        node.alg('aead algorithm', aead.raw_aead_algorithm,
                 self.lookup_aead_algorithm)
        node.value('chunk size', aead.chunk_size)
        node.hex('initialization vector', aead.iv, key='aead iv', count=True)

    def dump_one_pass(self, ctx, header, body, node):
        node.title = "One-pass signature packet"
        onepass = construct_packet(header, self.read_body(ctx, body))
        node.value('version', onepass.version)
        node.alg('signature type', onepass.raw_sig_type,
                 self.lookup_sig_type, key='type')
        node.alg('hash algorithm', onepass.raw_hash_algorithm,
                 self.lookup_hash_algorithm)
        node.alg('public key algorithm', onepass.raw_pub_algorithm,
                 self.lookup_pub_algorithm)
        if onepass.key_id is not None:
            node.hex('signing key id', onepass.key_id, key='signer')
        else:
            node.hex('salt', onepass.salt, count=True)
            node.hex('fingerprint', onepass.fingerprint, count=True)
        node.value('nested', onepass.nested)

    def dump_compressed(self, ctx, header, body, node):
        '''Returns the decompressing source for the caller to dump.'''
        node.title = "Compressed data packet"
        packet = CompressedDataPacket.from_source(body)
        node.alg('compression algorithm', packet.raw_compression_algo,
                 self.lookup_compression_algorithm, key='algorithm')
        inner = packet.decompressed(body)
        node.line("Decompressed contents:")
        return inner

    def dump_literal(self, ctx, header, body, node):
        node.title = "Literal data packet"
        literal = LiteralDataPacket.from_source(body)
        node.line(b"data format: '" + literal.data_format + b"'")
        node.text('format', literal.data_format, text=False)
        node.line(b"filename: " + literal.filename +
                  b" (len %d)" % len(literal.filename))
        node.text('filename', literal.filename, text=False)
        node.time('timestamp', literal.timestamp)

        start = body.readb
        while body.read(LITERAL_CHUNK):
            pass
        node.value('data bytes', body.readb - start, key='datalen')

    def dump_marker(self, ctx, header, body, node):
        node.title = "Marker packet"
        marker = construct_packet(header, self.read_body(ctx, body))
        if marker.valid:
            node.value('contents', MARKER_CONTENTS.decode("ascii"))
        else:
            node.value('contents', "invalid")
            ctx.fail("invalid marker packet")

