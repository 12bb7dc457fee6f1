import io
import logging

from .data import BinaryData, skip_cleartext, unarmor
from .decoders import PacketDecoders, LAYERS_NOTICE
from .fields import DumpNode
from .render import TextRenderer, JsonRenderer
from .source import PacketBodySource, peek_packet_header
from .utils import PgpdumpException


LOG = logging.getLogger(__name__)

STREAM_NOTICE = ":too many OpenPGP stream packets, stopping."


class DumpConfig(object):
    '''Output switches and resource bounds of a dump.'''

    def __init__(self, dump_packets=False, dump_mpi=False, dump_grips=False,
                 max_layers=32, max_errors=64, max_stream_packets=16,
                 packet_dump_limit=1024, max_packet_size=1024 * 1024):
        self.dump_packets = dump_packets
        self.dump_mpi = dump_mpi
        self.dump_grips = dump_grips
        self.max_layers = max_layers
        self.max_errors = max_errors
        self.max_stream_packets = max_stream_packets
        self.packet_dump_limit = packet_dump_limit
        self.max_packet_size = max_packet_size

    def __repr__(self):
        return "<%s: %s>" % (self.__class__.__name__, ", ".join(
            "%s=%r" % item for item in sorted(vars(self).items())))


class DumpContext(object):
    """State of one top-level dump: nesting depth, failures and stream
    packets seen. Once finished is set every loop unwinds."""

    def __init__(self, config):
        self.config = config
        self.layers = 0
        self.failures = 0
        self.stream_packets = 0
        self.finished = False

    def fail(self, reason):
        LOG.warning("Packet dump failure: %s", reason)
        self.failures += 1
        if self.failures > self.config.max_errors:
            LOG.warning("Too many packet dump errors, stopping")
            self.finished = True


class PacketDumper(PacketDecoders):
    '''Walks a packet stream and feeds one renderer. Compressed data is
    followed recursively; every path is bounded by the DumpConfig limits.'''

    DECODERS = {
        1: 'dump_pk_session_key',
        2: 'dump_signature',
        3: 'dump_sk_session_key',
        4: 'dump_one_pass',
        5: 'dump_key',
        6: 'dump_key',
        7: 'dump_key',
        8: 'dump_compressed',
        9: 'dump_encrypted',
        10: 'dump_marker',
        11: 'dump_literal',
        13: 'dump_userid',
        14: 'dump_key',
        17: 'dump_userid',
        18: 'dump_encrypted',
        20: 'dump_encrypted',
    }
    STREAM_TAGS = (8, 9, 11, 18, 20)
    # trust and modification detection code
    UNHANDLED_TAGS = (12, 19)

    def __init__(self, config=None, **kwargs):
        if config is None:
            config = DumpConfig(**kwargs)
        self.config = config

    def dump(self, src, renderer):
        '''Dump everything in src into renderer. A fresh context is used for
        every call. Errors in the framing of the input (cleartext, armor,
        the top-level packet headers) are raised; everything else is
        reported in the output.'''
        ctx = DumpContext(self.config)

        if src.is_cleartext():
            renderer.notice(":cleartext signed data")
            if not skip_cleartext(src):
                raise PgpdumpException("malformed cleartext signed data")

        if src.is_armored():
            src = unarmor(src)
            renderer.notice(":armored input")

        if src.eof():
            renderer.notice(":empty input")
            return renderer

        self.dump_packets(ctx, src, renderer)
        return renderer

    def dump_packets(self, ctx, src, renderer):
        if src.eof():
            return
        ctx.layers += 1
        try:
            if ctx.layers > ctx.config.max_layers:
                LOG.warning("Too many OpenPGP nested layers during the dump")
                renderer.notice(LAYERS_NOTICE)
                return
            while not ctx.finished and not src.eof():
                self.dump_packet(ctx, src, renderer)
                if ctx.finished:
                    break
                if ctx.stream_packets > ctx.config.max_stream_packets:
                    LOG.warning("Too many OpenPGP stream packets during the "
                                "dump")
                    renderer.notice(STREAM_NOTICE)
                    ctx.finished = True
        finally:
            ctx.layers -= 1

    def dump_packet(self, ctx, src, renderer):
        offset = src.readb
        header = peek_packet_header(src)

        renderer.begin_packet()
        try:
            self.dump_packet_body(ctx, src, renderer, offset, header)
        except PgpdumpException:
            # a packet whose header or contents cannot be read is dropped
            renderer.abort_packet()
            raise
        renderer.end_packet()

    def dump_packet_body(self, ctx, src, renderer, offset, header):
        renderer.emit(self.header_node(offset, header))
        if ctx.config.dump_packets:
            renderer.emit(self.contents_node(ctx, src, offset, header))

        body = PacketBodySource(src, header)
        node = DumpNode()
        inner = None
        failed = False
        tag = header.tag
        try:
            if tag in self.UNHANDLED_TAGS:
                node.line("Skipping unhandled pkt: %d" % tag)
                node.line("")
            elif tag not in self.DECODERS:
                node.line("Skipping Unknown pkt: %d" % tag)
                node.line("")
                ctx.fail("unknown packet tag %d" % tag)
            else:
                if tag in self.STREAM_TAGS:
                    ctx.stream_packets += 1
                inner = getattr(self, self.DECODERS[tag])(
                    ctx, header, body, node)
        except PgpdumpException as e:
            node.line("failed to parse")
            failed = True
            ctx.fail("%s at offset %d: %s" % (
                self.lookup_tag(tag), offset, e))
        renderer.emit(node)

        if inner is not None:
            renderer.begin_contents()
            ok = True
            try:
                self.dump_packets(ctx, inner, renderer)
            except PgpdumpException as e:
                ok = False
                ctx.fail("compressed stream at offset %d: %s" % (offset, e))
            renderer.end_contents(ok)

        try:
            body.skip_rest()
        except PgpdumpException as e:
            # a body that failed to decode is only counted once
            if failed:
                LOG.debug("Skipping packet at offset %d: %s", offset, e)
            else:
                ctx.fail("skipping packet at offset %d: %s" % (offset, e))

    def header_node(self, offset, header):
        node = DumpNode()
        node.line(":off %d: packet header 0x%s (tag %d, %s)" % (
            offset, header.raw.hex(), header.tag, header.describe_length()))

        fields = DumpNode()
        fields.value('offset', offset)
        fields.alg('tag', header.tag, self.lookup_tag)
        fields.hex('raw', header.raw)
        if not header.partial and not header.indeterminate:
            fields.value('length', header.length)
        fields.value('partial', header.partial)
        fields.value('indeterminate', header.indeterminate)
        node.node(None, fields, key='header', text=False)
        return node

    def contents_node(self, ctx, src, offset, header):
        '''Hexdump of the first bytes of the body, peeked so the decoder
        still sees all of it.'''
        limit = ctx.config.packet_dump_limit
        length = 0
        if not header.partial and not header.indeterminate:
            length = header.length
        wanted = length
        truncated = False
        if not length or length > limit:
            wanted = limit
            truncated = True
        data = src.peek(header.hdr_len + wanted)[header.hdr_len:]
        if truncated or len(data) < length:
            size = "first %d bytes" % len(data)
        else:
            size = "%d bytes" % len(data)

        node = DumpNode()
        node.hexdump(":off %d: packet contents (%s)" % (
            offset + header.hdr_len, size), data)
        node.line("")
        return node


def dump_text(data, **config):
    '''Dump bytes (or an armored string) and return the text output.'''
    sink = io.BytesIO()
    PacketDumper(**config).dump(BinaryData(data), TextRenderer(sink))
    return sink.getvalue()


def dump_json(data, **config):
    '''Dump bytes (or an armored string) and return the list of packet
    objects.'''
    renderer = PacketDumper(**config).dump(BinaryData(data), JsonRenderer())
    return renderer.result
