import binascii
import logging
from base64 import b64decode

from .source import FileSource, Source
from .utils import PgpdumpException, crc24


LOG = logging.getLogger(__name__)

SIGNATURE_MAGIC = b'\n-----BEGIN PGP SIGNATURE-----'
CLEARTEXT_WINDOW = 4095
# armored input is read whole, so cap it
ARMOR_LIMIT = 64 * 1024 * 1024


class BinaryData(Source):
    '''The base object used for extracting PGP data packets. This expects
    fully binary data as input; such as that read from a .sig or .gpg
    file.'''

    def __init__(self, data):
        super(BinaryData, self).__init__()
        if data is None:
            data = b''
        if isinstance(data, str):
            data = data.encode('utf-8')
        self.data = bytes(data)
        self.length = len(self.data)
        self._pos = 0

    def _read_raw(self, size):
        chunk = self.data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk

    def __repr__(self):
        return "<%s: length %d>" % (self.__class__.__name__, self.length)


class FileData(FileSource):
    '''Binary packet data read incrementally from a file object opened in
    binary mode.'''
    pass


class AsciiData(BinaryData):
    '''A wrapper class that supports ASCII-armored input. It searches for
    the first PGP magic header and extracts the data contained within.'''

    def __init__(self, data):
        self.original_data = data
        if not isinstance(data, bytes):
            data = bytes(data)
        data = self.strip_magic(data)
        data, known_crc = self.split_data_crc(data)
        try:
            data = b64decode(data)
        except binascii.Error as e:
            raise PgpdumpException("Bad armor encoding: %s" % e)
        if known_crc is not None:
            # verify it if we could find it
            actual_crc = crc24(data)
            if known_crc != actual_crc:
                raise PgpdumpException(
                    "CRC failure: known 0x%x, actual 0x%x" % (
                        known_crc, actual_crc))
        super(AsciiData, self).__init__(data)

    @staticmethod
    def strip_magic(data):
        '''Strip away the '-----BEGIN PGP SIGNATURE-----' and related cruft
        so we can safely base64 decode the remainder.'''
        magic = b'-----BEGIN PGP '
        ignore = b'-----BEGIN PGP SIGNED '

        # find our magic string, skipping our ignored string
        idx = data.find(magic)
        while idx >= 0 and data[idx:idx + len(ignore)] == ignore:
            idx = data.find(magic, idx + 1)
        if idx < 0:
            raise PgpdumpException("No armor header found")

        # the data always immediately follows a blank line, meaning headers
        # are done
        nl_idx = data.find(b'\n\n', idx)
        if nl_idx < 0:
            nl_idx = data.find(b'\r\n\r\n', idx)
        if nl_idx < 0:
            raise PgpdumpException("found magic, could not find start of data")
        end_idx = data.find(b'-----', nl_idx)
        if end_idx < 0:
            raise PgpdumpException("No armor trailer found")
        return data[nl_idx:end_idx]

    @staticmethod
    def split_data_crc(data):
        '''The Radix-64 format appends any CRC checksum to the end of the data
        block, in the form '=alph', where there are always 4 ASCII characters
        corresponding to 3 digits (24 bits). Look for this special case.'''
        # don't let newlines trip us up
        data = data.rstrip()
        if len(data) >= 5 and data[-5:-4] == b'=':
            try:
                crc = b64decode(data[-4:])
            except binascii.Error as e:
                raise PgpdumpException("Bad armor checksum: %s" % e)
            return (data[:-5], int.from_bytes(crc, 'big'))
        return (data, None)


def skip_cleartext(src):
    '''Advance a cleartext signed source up to its signature armor. Peeks in
    bounded windows; returns False when no signature is found.'''
    siglen = len(SIGNATURE_MAGIC)
    while not src.eof():
        window = src.peek(CLEARTEXT_WINDOW)
        if len(window) <= siglen:
            return False
        pos = window.find(SIGNATURE_MAGIC)
        if pos >= 0:
            # +1 skips the newline in front of the armor header
            src.skip(pos + 1)
            return True
        src.skip(len(window) - siglen + 1)
    return False


def unarmor(src):
    '''Decode the armored remainder of src into a new binary source.'''
    text = src.read_all(ARMOR_LIMIT)
    LOG.debug("Unarmoring %d bytes of input", len(text))
    return AsciiData(text)
