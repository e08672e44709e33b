# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import List, Optional, TextIO
import argparse
import json
import logging
import sys

from rrt.address import MailAddress
from rrt.config import Config
from rrt.errors import ErrorMappingException, RecipientRewriteTableException
from rrt.mapping import Mapping, MappingSource, MappingType
from rrt.recipient_rewrite_table import RecipientRewriteTable

def arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='rrt', description='recipient rewrite table administration')
    parser.add_argument('--config', help='yaml config file')
    sub = parser.add_subparsers(dest='command', required=True)

    add = sub.add_parser('add', help='add a mapping to a source')
    add.add_argument('source', help='user@domain, *@domain or domain')
    add.add_argument('mapping', help='e.g. alias:bob@example.com')

    remove = sub.add_parser('remove', help='remove a mapping from a source')
    remove.add_argument('source')
    remove.add_argument('mapping')

    lst = sub.add_parser('list', help='stored mappings of a source or all')
    lst.add_argument('source', nargs='?')

    sources = sub.add_parser('sources', help='sources of a type or mapping')
    group = sources.add_mutually_exclusive_group(required=True)
    group.add_argument('--type', dest='mapping_type')
    group.add_argument('--mapping')

    resolve = sub.add_parser('resolve', help='expand an address')
    resolve.add_argument('address')
    resolve.add_argument('--type', dest='types', action='append',
                         help='only apply this mapping type, repeatable')
    return parser


def run(rrt : RecipientRewriteTable, args : argparse.Namespace):
    if args.command == 'add':
        return {'created': rrt.add_mapping(MappingSource.parse(args.source),
                                           Mapping.parse(args.mapping))}
    elif args.command == 'remove':
        return {'removed': rrt.remove_mapping(
            MappingSource.parse(args.source), Mapping.parse(args.mapping))}
    elif args.command == 'list':
        if args.source:
            return rrt.get_stored_mappings(
                MappingSource.parse(args.source)).to_json()
        return { source.as_string(): mappings.to_json()
                 for source, mappings in
                 sorted(rrt.get_all_mappings().items()) }
    elif args.command == 'sources':
        if args.mapping_type:
            out = rrt.get_sources_for_type(
                MappingType.from_str(args.mapping_type))
        else:
            out = rrt.list_sources(Mapping.parse(args.mapping))
        return [s.as_string() for s in out]
    elif args.command == 'resolve':
        addr = MailAddress.parse(args.address)
        types = None
        if args.types:
            types = [MappingType.from_str(t) for t in args.types]
        try:
            return rrt.get_resolved_mappings(
                addr.local_part, addr.domain, types).to_json()
        except ErrorMappingException as e:
            return {'error': e.response.to_json()}
    raise ValueError('unknown command %s' % args.command)


def main(argv : List[str], out : TextIO = sys.stdout,
         err : TextIO = sys.stderr, config : Optional[Config] = None) -> int:
    args = arg_parser().parse_args(argv)
    if config is None:
        config = Config()
        if args.config:
            config.load(args.config)
    try:
        rrt = config.build()
        result = run(rrt, args)
    except RecipientRewriteTableException as e:
        logging.info('rrt %s failed: %s', args.command, e.message)
        err.write('%s %d %s\n' % (e.kind.value, e.kind.http_status(),
                                  e.message))
        return 1
    finally:
        config.close()
    out.write(json.dumps(result, indent=2) + '\n')
    return 0


def cli():
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s [%(process)d] [%(thread)d] '
        '%(filename)s:%(lineno)d %(message)s')
    sys.exit(main(sys.argv[1:]))

if __name__ == '__main__':
    cli()
