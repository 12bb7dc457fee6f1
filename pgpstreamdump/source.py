import bz2
import logging
import zlib

from .utils import PgpdumpException, PacketReadError, get_int2, get_int4


LOG = logging.getLogger(__name__)

CHUNK_SIZE = 16384
MAX_HEADER_SIZE = 6

CLEARTEXT_MAGIC = b'-----BEGIN PGP SIGNED MESSAGE-----'
ARMOR_MAGIC = b'-----BEGIN PGP '
ARMOR_PEEK = 1024


class Source(object):
    '''A pull-based byte source with bounded look-ahead. Subclasses provide
    _read_raw(), which returns up to n bytes and an empty string at the end
    of the stream.'''

    def __init__(self):
        self._buffer = b''
        self._exhausted = False
        # bytes consumed so far, used for the ':off N:' offsets
        self.readb = 0

    def _read_raw(self, size):
        raise NotImplementedError

    def _fill(self, size):
        while len(self._buffer) < size and not self._exhausted:
            chunk = self._read_raw(max(size - len(self._buffer), CHUNK_SIZE))
            if not chunk:
                self._exhausted = True
            else:
                self._buffer += chunk

    def peek(self, size):
        '''Return up to size bytes without consuming them.'''
        self._fill(size)
        return self._buffer[:size]

    def read(self, size):
        data = self.peek(size)
        self._buffer = self._buffer[len(data):]
        self.readb += len(data)
        return data

    def read_exact(self, size):
        data = self.read(size)
        if len(data) != size:
            raise PacketReadError("Premature end of data: wanted %d bytes, "
                                  "got %d" % (size, len(data)))
        return data

    def read_all(self, limit):
        '''Read to the end of the source, failing once more than limit bytes
        turn up.'''
        data = self.read(limit + 1)
        if len(data) > limit:
            raise PgpdumpException("Packet too large: more than %d bytes" % limit)
        return data

    def skip(self, size):
        while size > 0:
            data = self.read(min(size, CHUNK_SIZE))
            if not data:
                return False
            size -= len(data)
        return True

    def skip_rest(self):
        while self.read(CHUNK_SIZE):
            pass

    def eof(self):
        return not self.peek(1)

    def is_cleartext(self):
        return self.peek(len(CLEARTEXT_MAGIC)) == CLEARTEXT_MAGIC

    def is_armored(self):
        window = self.peek(ARMOR_PEEK)
        if not window or window[0] & 0x80:
            return False
        return ARMOR_MAGIC in window

    def __repr__(self):
        return "<%s: offset %d>" % (self.__class__.__name__, self.readb)


class FileSource(Source):
    '''Source reading from a binary file object, such as sys.stdin.buffer.'''

    def __init__(self, fileobj):
        super(FileSource, self).__init__()
        self.fileobj = fileobj

    def _read_raw(self, size):
        return self.fileobj.read(size)


class PacketHeader(object):
    '''The header of one packet, as peeked from a source.'''

    def __init__(self, tag, raw, new, length=None, partial=False,
                 indeterminate=False):
        self.tag = tag
        self.raw = raw
        self.new = new
        # for partial packets this is the size of the first chunk only
        self.length = length
        self.partial = partial
        self.indeterminate = indeterminate

    @property
    def hdr_len(self):
        return len(self.raw)

    def describe_length(self):
        if self.partial:
            return "partial len"
        if self.indeterminate:
            return "indeterminate len"
        return "len %d" % self.length

    def __repr__(self):
        return "<%s: tag %d, %s>" % (
            self.__class__.__name__, self.tag, self.describe_length())


def new_tag_length(data, start):
    """Takes a bytearray of data as input, as well as an offset of where to
    look. Returns a derived (offset, length, partial) tuple.
    Reference: http://tools.ietf.org/html/rfc4880#section-4.2.2
    """
    if len(data) <= start:
        raise PacketReadError("Missing new-format length at offset %d" % start)
    first = data[start]

    # one-octet
    if first < 192:
        return (1, first, False)

    # two-octet
    if first < 224:
        if len(data) < start + 2:
            raise PacketReadError("Truncated two-octet length")
        return (2, ((first - 192) << 8) + data[start + 1] + 192, False)

    # five-octet
    if first == 255:
        if len(data) < start + 5:
            raise PacketReadError("Truncated five-octet length")
        return (5, get_int4(data, start + 1), False)

    # Partial Body Length header, one octet long
    return (1, 1 << (first & 0x1f), True)


def old_tag_length(data, start):
    """Takes a bytearray of data as input, as well as an offset of where to
    look. Returns a derived (offset, length) tuple; length is None for the
    indeterminate length type."""
    temp_len = data[start] & 0x03

    if temp_len == 3:
        return (0, None)
    size = (1, 2, 4)[temp_len]
    if len(data) < start + 1 + size:
        raise PacketReadError("Truncated old-format length")
    if temp_len == 0:
        return (1, data[start + 1])
    if temp_len == 1:
        return (2, get_int2(data, start + 1))
    return (4, get_int4(data, start + 1))


def peek_packet_header(src):
    '''Peek the next packet header without consuming anything.'''
    data = src.peek(MAX_HEADER_SIZE)
    if not data:
        raise PacketReadError("No packet header: end of data")
    first = data[0]
    if not first & 0x80:
        raise PgpdumpException("Bad packet header byte 0x%02x" % first)

    if first & 0x40:
        tag = first & 0x3f
        offset, length, partial = new_tag_length(data, 1)
        return PacketHeader(tag, data[:1 + offset], True, length,
                            partial=partial)

    tag = (first >> 2) & 0x0f
    offset, length = old_tag_length(data, 0)
    return PacketHeader(tag, data[:1 + offset], False, length,
                        indeterminate=length is None)


class PacketBodySource(Source):
    '''Source over the body of a single packet. Consumes the header bytes
    from the parent and follows partial length chunks.'''

    def __init__(self, parent, header):
        super(PacketBodySource, self).__init__()
        self.parent = parent
        self.header = header
        parent.read_exact(header.hdr_len)
        self._left = header.length
        self._partial = header.partial
        self._indeterminate = header.indeterminate

    def _next_chunk(self):
        data = self.parent.peek(5)
        offset, length, partial = new_tag_length(data, 0)
        self.parent.read_exact(offset)
        self._left = length
        self._partial = partial

    def _read_raw(self, size):
        if self._indeterminate:
            return self.parent.read(size)
        while not self._left:
            if not self._partial:
                return b''
            self._next_chunk()
        data = self.parent.read(min(size, self._left))
        if not data:
            raise PacketReadError("Premature end of packet body: %d bytes "
                                  "missing" % self._left)
        self._left -= len(data)
        return data


class DecompressedSource(Source):
    '''Source yielding the decompressed contents of a compressed data
    packet body. Output is produced in bounded pieces.'''

    def __init__(self, src, algorithm):
        super(DecompressedSource, self).__init__()
        self.src = src
        self.algorithm = algorithm
        if algorithm == 0:
            self._decompressor = None
        elif algorithm == 1:
            # raw DEFLATE
            self._decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
        elif algorithm == 2:
            self._decompressor = zlib.decompressobj()
        elif algorithm == 3:
            self._decompressor = bz2.BZ2Decompressor()
        else:
            raise PgpdumpException("Unsupported compression algorithm %d" %
                                   algorithm)
        self._done = False

    def _read_raw(self, size):
        if self._decompressor is None:
            return self.src.read(size)
        try:
            if self.algorithm == 3:
                return self._read_bz2(size)
            return self._read_zlib(size)
        except (zlib.error, OSError, EOFError) as e:
            raise PgpdumpException("Decompression failed: %s" % e)

    def _read_zlib(self, size):
        zobj = self._decompressor
        while not self._done:
            if zobj.unconsumed_tail:
                data = zobj.unconsumed_tail
            else:
                data = self.src.read(CHUNK_SIZE)
                if not data:
                    self._done = True
                    return zobj.flush()
            out = zobj.decompress(data, size)
            if zobj.eof:
                self._done = True
            if out:
                return out
        return b''

    def _read_bz2(self, size):
        bzobj = self._decompressor
        while not self._done:
            if bzobj.needs_input:
                data = self.src.read(CHUNK_SIZE)
                if not data:
                    self._done = True
                    LOG.debug("bzip2 stream ended without end-of-stream marker")
                    return b''
            else:
                data = b''
            out = bzobj.decompress(data, size)
            if bzobj.eof:
                self._done = True
            if out:
                return out
        return b''
