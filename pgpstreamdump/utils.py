from datetime import datetime, timezone


class PgpdumpException(ValueError):
    '''Base exception class raised by any parsing errors, etc.'''
    pass


class PacketReadError(PgpdumpException):
    '''Raised when a source runs out of data in the middle of a packet.'''
    pass


CRC24_INIT = 0xb704ce
CRC24_POLY = 0x1864cfb


def crc24(data):
    '''Implementation of the CRC-24 algorithm used by OpenPGP armor, see
    http://tools.ietf.org/html/rfc4880#section-6.1'''
    crc = CRC24_INIT
    for byte in data:
        crc ^= byte << 16
        for _ in range(8):
            crc <<= 1
            if crc & 0x1000000:
                crc ^= CRC24_POLY
    return crc & 0xffffff


def get_hex_data(data, offset, byte_count):
    '''Pull the given number of bytes from data at offset and return as a
    lowercase hex-encoded string.'''
    chunk = bytes(data[offset:offset + byte_count])
    if len(chunk) != byte_count:
        raise PgpdumpException("Expected %d bytes at offset %d, got %d" % (
            byte_count, offset, len(chunk)))
    return chunk.hex()


def get_int2(data, offset):
    '''Pull two bytes from data at offset and return as an integer.'''
    return (data[offset] << 8) + data[offset + 1]


def get_int4(data, offset):
    '''Pull four bytes from data at offset and return as an integer.'''
    return ((data[offset] << 24) + (data[offset + 1] << 16) +
            (data[offset + 2] << 8) + data[offset + 3])


def get_bytes(data, offset, count):
    '''Slice exactly count bytes out of data, or fail.'''
    chunk = bytes(data[offset:offset + count])
    if len(chunk) != count:
        raise PgpdumpException("Unexpected end of data: wanted %d bytes at "
                               "offset %d, got %d" % (count, offset, len(chunk)))
    return chunk


def get_int_bytes(value):
    '''Get the big-endian byte form of an integer.'''
    byte_length = (value.bit_length() + 7) // 8 or 1
    return value.to_bytes(byte_length, 'big')


class Mpi(object):
    '''A multi-precision integer as stored on the wire: the declared bit
    count is kept alongside the magnitude bytes so a dump can show both.'''

    def __init__(self, bits, raw):
        self.declared_bits = bits
        self.raw = raw

    @property
    def value(self):
        return int.from_bytes(self.raw, 'big')

    @property
    def bits(self):
        return self.value.bit_length()

    def __repr__(self):
        return "<%s: %d bits>" % (self.__class__.__name__, self.bits)


def get_mpi(data, offset):
    '''Gets a multi-precision integer as per RFC-4880.
    Returns the Mpi and the new offset.
    See: http://tools.ietf.org/html/rfc4880#section-3.2'''
    mpi_len = get_int2(data, offset)
    offset += 2
    to_process = (mpi_len + 7) // 8
    raw = get_bytes(data, offset, to_process)
    offset += to_process
    return Mpi(mpi_len, raw), offset


def decode_s2k_iterations(c):
    '''Expand the one-octet coded iteration count of an iterated and salted
    S2K, see https://tools.ietf.org/html/rfc4880#section-3.7.1.3'''
    return (16 + (c & 15)) << ((c >> 4) + 6)


def format_time(timestamp):
    return datetime.fromtimestamp(timestamp, timezone.utc).ctime()


HEXDUMP_LINE = 16


def hexdump(data):
    '''Yield hexdump rows of 16 bytes: offset, hex octets and printable
    ASCII, in the layout used by the text dump.'''
    data = bytes(data)
    for start in range(0, len(data), HEXDUMP_LINE):
        row = data[start:start + HEXDUMP_LINE]
        octets = ''.join('%02x ' % b for b in row)
        octets += '   ' * (HEXDUMP_LINE - len(row))
        text = ''.join(chr(b) if 0x20 <= b < 0x7f else '.' for b in row)
        text += ' ' * (HEXDUMP_LINE - len(row))
        yield '%05d | %s | %s' % (start, octets, text)
