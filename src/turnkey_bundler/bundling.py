# -*- coding: utf-8 -*-
import logging
import os
import shutil
import tempfile

from turnkey_bundler.dependency_graph import DependencyGraph
from turnkey_bundler.errors import AmbiguousIdentityError
from turnkey_bundler.errors import DuplicateInputError
from turnkey_bundler.errors import MissingFileError
from turnkey_bundler.errors import MixedFormatError
from turnkey_bundler.errors import UnknownRootError
from turnkey_bundler.libraries import detect_library_format
from turnkey_bundler.metadata import TURNKEY_FILE_NAME
from turnkey_bundler.metadata import TurnKeyMetadata
from turnkey_bundler.relocation import library_formats
from turnkey_bundler.tool_lookup import ToolConfiguration
from turnkey_bundler.tools import create_tools


logger = logging.getLogger(__name__)


def create_bundle(libraries, roots, output, library_format='auto', sub_path=None,
                  tool_configuration=None, tools=None):
    """Converts a set of native libraries into a relocatable bundle.

    The whole conversion happens in a temporary working directory, and the results are only
    copied to `output` once every step has succeeded.

    Args:
        libraries (:obj:`list` of :obj:`str`): The candidate library files. Directories are
            skipped with a warning.
        roots (:obj:`list` of :obj:`str`): The fuzzy names of the libraries that will be loaded
            by the application. Everything they don't depend on is dropped.
        output (str): The directory where the bundle will be written out to.
        library_format (str, optional): One of `elf`, `macho`, `coff`, or `auto` to detect the
            format from the files themselves.
        sub_path (str, optional): A relative path inside of `output` to place the files in.
        tool_configuration (ToolConfiguration, optional): Where to find the external tools. It is
            computed from the environment if omitted.
        tools (dict, optional): Already constructed tool instances by name, these take precedence
            over `tool_configuration`.
    Returns:
        TurnKeyMetadata: The metadata that was written alongside the libraries.
    """
    roots = list(roots)
    assert len(roots), 'No root libraries were specified.'
    paths = resolve_input_files(libraries)
    assert len(paths), 'No library files were specified.'

    if library_format == 'auto':
        library_format = detect_common_format(paths)
    binary_format = library_formats[library_format]
    logger.info('Bundling %d %s libraries.' % (len(paths), binary_format.name))

    # Find every tool up front so that nothing is touched if one of them is missing.
    resolved_tools = dict(tools or {})
    missing_tools = [name for name in binary_format.tool_names if name not in resolved_tools]
    if missing_tools:
        tool_configuration = tool_configuration or ToolConfiguration.from_environment()
        resolved_tools.update(create_tools(tool_configuration, missing_tools))

    working_directory = create_working_directory()
    try:
        logger.info('Using the working directory "%s".' % working_directory)
        copy_input_files(paths, working_directory)
        analyzed_libraries = [binary_format.analyze(path, resolved_tools)
                              for path in sorted(list_files(working_directory))]
        logger.debug('Working directory contents: %s' % ', '.join(
            repr(library) for library in analyzed_libraries))

        dependency_graph = DependencyGraph.of(analyzed_libraries)
        logger.debug('Dependency graph: %r' % dependency_graph)

        actual_roots, rooted_graph = filter_unneeded_libraries(
            analyzed_libraries, dependency_graph, roots)
        included_libraries = rooted_graph.local_libraries_in_load_order
        system_libraries = rooted_graph.system_libraries

        remove_unused_libraries(analyzed_libraries, included_libraries)

        file_names = dict((library, binary_format.bundled_file_name(library))
                          for library in included_libraries)
        validate_file_names(file_names)
        # The bundled names can cross the input names, so the results are assembled separately.
        bundle_directory = tempfile.mkdtemp(prefix='bundle-', dir=working_directory)
        metadata = create_metadata(binary_format, actual_roots, included_libraries,
                                   system_libraries, file_names)
        metadata.write_to(os.path.join(bundle_directory, TURNKEY_FILE_NAME))

        logger.info('Performing rewrite operation(s).')
        for library in included_libraries:
            logger.debug('Rewriting %r.' % library)
            binary_format.rewrite(library, included_libraries)
        for library in included_libraries:
            os.rename(library.path, os.path.join(bundle_directory, file_names[library]))

        target_directory = os.path.join(output, sub_path) if sub_path else output
        logger.info('Copying libraries to "%s".' % target_directory)
        publish(bundle_directory, target_directory)

        logger.info('Successfully created the bundle in "%s".' % target_directory)
        return metadata
    finally:
        shutil.rmtree(working_directory)


def create_working_directory():
    working_directory = tempfile.mkdtemp(prefix='turnkey-bundle-')
    # The permissions on the `mkdtemp()` directory will be extremely restricted by default,
    # so we'll modify them to reflect the current umask.
    umask = os.umask(0)
    os.umask(umask)
    os.chmod(working_directory, 0o777 & ~umask)
    return working_directory


def resolve_input_files(paths):
    """Normalizes the input paths, skipping directories and merging repeated files."""
    resolved = []
    for path in paths:
        if not os.path.exists(path):
            raise MissingFileError('The "%s" file was not found.' % path)
        if os.path.isdir(path):
            logger.warning('Ignoring the directory "%s" in the library list.' % path)
            continue
        path = os.path.normpath(os.path.abspath(path))
        if path not in resolved:
            resolved.append(path)
    return resolved


def detect_common_format(paths):
    formats = dict((path, detect_library_format(path)) for path in paths)
    distinct_formats = sorted(set(formats.values()))
    if len(distinct_formats) > 1:
        raise MixedFormatError('A bundle can only contain a single binary format, found %s: %s' % (
            ', '.join(distinct_formats),
            ', '.join('%s (%s)' % (path, formats[path]) for path in paths),
        ))
    return distinct_formats[0]


def copy_input_files(paths, working_directory):
    sources = {}
    for path in paths:
        name = os.path.basename(path)
        if name in sources:
            raise DuplicateInputError(
                'The files "%s" and "%s" would both be bundled as "%s".' % (
                    sources[name], path, name))
        sources[name] = path
        shutil.copy(path, os.path.join(working_directory, name))


def list_files(directory):
    return [os.path.join(directory, name) for name in os.listdir(directory)
            if os.path.isfile(os.path.join(directory, name))]


def resolve_roots(libraries, root_names):
    """Finds the single analyzed library matching each root name."""
    roots = []
    for root_name in root_names:
        matches = [library for library in libraries if library.fuzzy_name == root_name]
        if not matches:
            raise UnknownRootError('The root library "%s" is not in the input files.' % root_name)
        if len(matches) > 1:
            raise AmbiguousIdentityError('The root library "%s" matches several files: %s' % (
                root_name, ', '.join(library.path for library in matches)))
        if matches[0] not in roots:
            roots.append(matches[0])
    return roots


def filter_unneeded_libraries(libraries, dependency_graph, root_names):
    """Prunes the dependency graph to the libraries needed by the roots.

    Returns:
        tuple: The roots that aren't dependencies of other roots, and the pruned graph.
    """
    roots = resolve_roots(libraries, root_names)
    limited_graph = dependency_graph.subgraph_from(roots)
    linkage_roots = limited_graph.linkage_roots
    valid_roots = [root for root in roots if root in linkage_roots]

    invalid_roots = [root for root in roots if root not in linkage_roots]
    if invalid_roots:
        logger.warning((
            'The root libraries %s are not roots, but dependencies of other roots. These will be '
            'treated as dependencies.'
        ) % ', '.join(root.fuzzy_name for root in invalid_roots))

    return valid_roots, limited_graph


def remove_unused_libraries(libraries, included_libraries):
    """Deletes the files of all libraries that aren't needed by the roots."""
    included = set(included_libraries)
    unused_libraries = [library for library in libraries if library not in included]
    if unused_libraries:
        logger.warning('The unused libraries %s will be removed.' % ', '.join(
            library.fuzzy_name for library in unused_libraries))
    for library in unused_libraries:
        os.remove(library.path)


def create_metadata(binary_format, roots, included_libraries, system_libraries, file_names):
    if logger.isEnabledFor(logging.INFO):
        logger.info('Bundled libraries (in resolved load order):')
        for library in included_libraries:
            logger.info('  %r' % library)
        logger.info('System libraries (not bundled):')
        for library in sorted(system_libraries, key=lambda library: str(library.linkage_name)):
            logger.info('  %r' % library)

    if binary_format.autoload_supported:
        logger.info('Autoload is supported, the load order will only contain the roots.')
        load_order = [file_names[root] for root in roots]
    else:
        logger.info('Autoload is not supported, the load order will contain all libraries.')
        load_order = [file_names[library] for library in reversed(included_libraries)]

    return TurnKeyMetadata(
        bundled_libraries=[file_names[library] for library in included_libraries],
        system_libraries=[str(library.linkage_name) for library in system_libraries],
        load_order=load_order,
    )


def validate_file_names(file_names):
    """Makes sure that every bundled library ends up in a file of its own.

    Args:
        file_names (dict): Maps the included libraries to the names they'll be bundled under.
    """
    libraries_by_name = {}
    for library, name in sorted(file_names.items(), key=lambda item: item[1]):
        if name == TURNKEY_FILE_NAME:
            raise DuplicateInputError(
                'The library %r can\'t be bundled as "%s", that is the metadata file.' % (
                    library, name))
        if name in libraries_by_name:
            raise DuplicateInputError('The libraries %r and %r would both be bundled as "%s".' % (
                libraries_by_name[name], library, name))
        libraries_by_name[name] = library


def publish(bundle_directory, target_directory):
    """Copies the finished bundle to its destination.

    Nothing is placed in `target_directory` unless every file can be placed.
    """
    names = sorted(os.listdir(bundle_directory))
    blocked = [os.path.join(target_directory, name) for name in names
               if os.path.isdir(os.path.join(target_directory, name))]
    if blocked:
        raise DuplicateInputError('The directories %s are in the way of bundled files.' % (
            ', '.join('"%s"' % path for path in blocked)))

    if not os.path.exists(target_directory):
        os.makedirs(target_directory)
    # Copy next to the destination first so that the final moves stay on one file system.
    staging_directory = tempfile.mkdtemp(prefix='.turnkey-', dir=target_directory)
    try:
        for name in names:
            shutil.copy(os.path.join(bundle_directory, name),
                        os.path.join(staging_directory, name))
        for name in names:
            os.replace(os.path.join(staging_directory, name),
                       os.path.join(target_directory, name))
    finally:
        shutil.rmtree(staging_directory)
