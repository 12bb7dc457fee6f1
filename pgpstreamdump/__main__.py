import json
import logging
import sys
from argparse import ArgumentParser
from argparse import RawTextHelpFormatter

from .dump import DumpConfig, PacketDumper
from .render import JsonRenderer, TextRenderer
from .data import FileData
from .utils import PgpdumpException


def build_parser():
    parser = ArgumentParser(
        prog="pgpstreamdump",
        formatter_class=RawTextHelpFormatter,
        description="""
Dump the packet structure of OpenPGP data: binary, ASCII-armored or
cleartext signed. No secret material is decrypted.

Examples:
pgpstreamdump alice.pub
gpg --export alice | pgpstreamdump -j -g
""")
    parser.add_argument("file", nargs="*", default=["-"],
                        help="the pgp file(s), - for stdin (default)")
    parser.add_argument("-j", "--json", action="store_true",
                        help="print a JSON list of packets instead of text")
    parser.add_argument("-r", "--raw", action="store_true",
                        help="hexdump the raw packet and subpacket contents")
    parser.add_argument("-m", "--mpi", action="store_true",
                        help="print the contents of MPIs and key material")
    parser.add_argument("-g", "--grips", action="store_true",
                        help="print key fingerprints and grips")
    parser.add_argument("--max-layers", type=int, default=32,
                        help="maximum nesting of compressed data and "
                             "embedded signatures")
    parser.add_argument("--max-errors", type=int, default=64,
                        help="stop after this many packet errors")
    parser.add_argument("--max-stream-packets", type=int, default=16,
                        help="stop after this many data packets")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log debug output to stderr")
    return parser


def dump_file(dumper, fileobj, json_output, out):
    src = FileData(fileobj)
    if json_output:
        renderer = dumper.dump(src, JsonRenderer())
        out.write(json.dumps(renderer.result, indent=4).encode('utf-8'))
        out.write(b'\n')
    else:
        dumper.dump(src, TextRenderer(out))


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s")

    config = DumpConfig(dump_packets=args.raw, dump_mpi=args.mpi,
                        dump_grips=args.grips, max_layers=args.max_layers,
                        max_errors=args.max_errors,
                        max_stream_packets=args.max_stream_packets)
    dumper = PacketDumper(config)
    out = sys.stdout.buffer

    for path in args.file:
        try:
            if path == "-":
                dump_file(dumper, sys.stdin.buffer, args.json, out)
            else:
                with open(path, 'rb') as fileobj:
                    dump_file(dumper, fileobj, args.json, out)
        except (PgpdumpException, OSError) as e:
            out.flush()
            sys.stderr.write("pgpstreamdump: error: %s: %s\n" % (path, e))
            sys.exit(1)
    out.flush()


if __name__ == '__main__':
    main()
