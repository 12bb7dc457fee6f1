from .data import AsciiData, BinaryData, FileData
from .dump import DumpConfig, PacketDumper, dump_json, dump_text
from .render import JsonRenderer, TextRenderer
from .utils import PgpdumpException

__version__ = '0.1.0'

__all__ = ['AsciiData', 'BinaryData', 'FileData', 'DumpConfig',
           'PacketDumper', 'JsonRenderer', 'TextRenderer', 'PgpdumpException',
           'dump_json', 'dump_text']
