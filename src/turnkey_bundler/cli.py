# -*- coding: utf-8 -*-
import argparse
import logging
import sys

from turnkey_bundler import root_logger
from turnkey_bundler.bundling import create_bundle
from turnkey_bundler.errors import FatalError
from turnkey_bundler.tool_lookup import ToolConfiguration


logger = logging.getLogger(__name__)


def parse_args(args=None, namespace=None):
    """Constructs an argument parser and parses the arguments. The default behavior is
    to parse the arguments from `sys.argv`. A dictionary is returned rather than the
    typical namespace produced by `argparse`."""
    formatter = argparse.ArgumentDefaultsHelpFormatter
    parser = argparse.ArgumentParser(formatter_class=formatter, description=(
        'Convert a collection of native shared libraries into a self-contained bundle whose '
        'libraries find each other relative to their own location, regardless of where the '
        'bundle gets extracted.'
    ))

    parser.add_argument('libraries', metavar='LIBRARY', nargs='+', help=(
        'One or more shared libraries that are candidates for inclusion in the bundle. Only the '
        'ones that the root libraries depend on will be kept.'
    ))

    parser.add_argument('-r', '--root', metavar='NAME', dest='roots', action='append',
        required=True,
        help=(
            'The version-less name of a library that will be loaded directly, *e.g.* '
            '"libfoo.so". The argument can be used more than once to specify multiple roots.'
        ),
    )

    parser.add_argument('-o', '--output', metavar='DIRECTORY', required=True, help=(
        'The directory where the bundled libraries and the turnkey.xml metadata will be written.'
    ))

    parser.add_argument('-s', '--sub-path', metavar='PATH', default=None, help=(
        'An additional relative path inside of the output directory to place the files in.'
    ))

    parser.add_argument('-f', '--format', metavar='FORMAT', dest='library_format',
        choices=['auto', 'elf', 'macho', 'coff'], default='auto',
        help=(
            'The binary format of the libraries, one of "elf", "macho", or "coff". By default, '
            'it is detected from the files.'
        ),
    )

    parser.add_argument('--patchelf', metavar='EXECUTABLE', default=None, help=(
        'The patchelf executable used for ELF libraries.'
    ))

    parser.add_argument('--otool', metavar='EXECUTABLE', default=None, help=(
        'The otool executable used to read Mach-O libraries.'
    ))

    parser.add_argument('--install-name-tool', metavar='EXECUTABLE', default=None, help=(
        'The install_name_tool executable used to rewrite Mach-O libraries.'
    ))

    parser.add_argument('--readobj', metavar='EXECUTABLE', default=None, help=(
        'The (llvm-)readobj executable used for COFF libraries.'
    ))

    parser.add_argument('-q', '--quiet', action='store_true', help=(
        'Suppress warning messages.'
    ))

    parser.add_argument('-v', '--verbose', action='store_true', help=(
        'Output additional informational messages.'
    ))

    return vars(parser.parse_args(args, namespace))


def configure_logging(quiet, verbose):
    # Set the level.
    log_level = logging.WARN
    if quiet and not verbose:
        log_level = logging.ERROR
    elif verbose and not quiet:
        log_level = logging.INFO
    root_logger.setLevel(log_level)

    class StderrFilter(logging.Filter):
        def filter(self, record):
            return record.levelno in (logging.WARN, logging.ERROR)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_formatter = logging.Formatter('%(levelname)s: %(message)s')
    stderr_handler.setFormatter(stderr_formatter)
    stderr_handler.addFilter(StderrFilter())
    root_logger.addHandler(stderr_handler)

    class StdoutFilter(logging.Filter):
        def filter(self, record):
            return record.levelno in (logging.DEBUG, logging.INFO)

    stdout_formatter = logging.Formatter('%(message)s')
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(stdout_formatter)
    stdout_handler.addFilter(StdoutFilter())
    root_logger.addHandler(stdout_handler)


def main(args=None, namespace=None):
    args = parse_args(args, namespace)

    # Handle the CLI specific options here, removing them from `args` in the process.
    quiet, verbose = args.pop('quiet'), args.pop('verbose')
    configure_logging(quiet=quiet, verbose=verbose)

    # The explicit tool options become overrides for the environment based lookup.
    overrides = dict((name, args.pop(name)) for name in
                     ['install_name_tool', 'otool', 'patchelf', 'readobj'])

    try:
        args['tool_configuration'] = ToolConfiguration.from_environment(overrides=overrides)
        create_bundle(**args)
    except FatalError as fatal_error:
        logger.error('Fatal error encountered, exiting.')
        logger.error(fatal_error, exc_info=verbose)
        sys.exit(1)
