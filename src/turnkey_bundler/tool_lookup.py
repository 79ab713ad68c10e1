# -*- coding: utf-8 -*-
"""Resolution of the external tools' executables.

The lookup is computed once from the environment's search path and then passed around as an
immutable `ToolConfiguration`. In addition to the plain executable names, the lookup knows a
few aliases so that common installations are picked up without configuration:

* `name.exe` is also available as `name` if `.exe` is listed in `PATHEXT`,
* `name-10` is also available as `name`, preferring the highest version,
* `llvm-name` is also available as `name` (which makes `llvm-readobj` usable as `readobj`).

Explicitly configured executables always take precedence over anything on the search path.
"""
import logging
import os
import re

from turnkey_bundler.errors import ToolNotFoundError


logger = logging.getLogger(__name__)

# Maps each tool to the names it may be installed under, in order of preference.
TOOL_NAMES = {
    'install_name_tool': ('install_name_tool', 'install-name-tool'),
    'otool': ('otool',),
    'patchelf': ('patchelf',),
    'readobj': ('readobj',),
}

ENVIRONMENT_OVERRIDE_PREFIX = 'TURNKEY_TOOL_'

versioned_regex = re.compile(r'^(.*)-([0-9]+)$')


def list_binaries_on(directory):
    """Lists the executable files in a directory, or nothing if it can't be read."""
    try:
        entries = sorted(os.listdir(directory))
    except OSError:
        return []
    binaries = []
    for entry in entries:
        path = os.path.join(directory, entry)
        if os.path.isfile(path) and os.access(path, os.X_OK):
            binaries.append(path)
    return binaries


def to_lookup(paths):
    return dict((os.path.basename(path), path) for path in paths)


def merge_with_descending_precedence(lookups):
    """Merges dictionaries so that entries from earlier ones win over later ones."""
    merged = {}
    for lookup in reversed(list(lookups)):
        merged.update(lookup)
    return merged


def implicit_extension_aliases(lookup, path_extensions):
    aliases = {}
    for name, path in lookup.items():
        for extension in path_extensions:
            if not extension or not name.endswith(extension):
                continue
            shortened = name[:-len(extension)]
            if shortened and shortened not in lookup:
                aliases[shortened] = path
    return aliases


def llvm_aliases(lookup):
    aliases = {}
    for name, path in lookup.items():
        if name.startswith('llvm-'):
            shortened = name[len('llvm-'):]
            if shortened and shortened not in lookup:
                aliases[shortened] = path
    return aliases


def version_aliases(lookup):
    """Aliases `name-N` as `name`, choosing the highest `N` if several versions are present."""
    best_versions = {}
    for name, path in lookup.items():
        match = versioned_regex.match(name)
        if not match:
            continue
        shortened, version = match.group(1), int(match.group(2))
        if shortened in lookup:
            continue
        if shortened not in best_versions or best_versions[shortened][0] < version:
            best_versions[shortened] = (version, path)
    return dict((name, path) for (name, (version, path)) in best_versions.items())


def compute_smart_path_lookup(path_listings, path_extensions=()):
    """Computes the name to executable lookup.

    Args:
        path_listings (:obj:`list` of :obj:`list` of :obj:`str`): The executables found in each
            search directory, in order of descending precedence.
        path_extensions (:obj:`list` of :obj:`str`): Extensions that may be omitted when
            executables are invoked (*e.g.* `.exe`).
    Returns:
        dict: Maps names to the absolute paths of executables.
    """
    lookup = merge_with_descending_precedence(to_lookup(listing) for listing in path_listings)

    def extend(current, aliases):
        extended = dict(current)
        extended.update(aliases)
        return extended

    lookup = extend(lookup, implicit_extension_aliases(lookup, path_extensions))
    lookup = extend(lookup, version_aliases(lookup))
    lookup = extend(lookup, llvm_aliases(lookup))
    lookup = extend(lookup, version_aliases(lookup))
    return lookup


class ToolConfiguration(object):
    """A read-only, once computed mapping from tool names to executables.

    Attributes:
        lookup (dict): The smart lookup of executables on the search path.
        overrides (dict): Explicitly configured executables by tool name.
    """
    def __init__(self, lookup=None, overrides=None):
        self._lookup = dict(lookup or {})
        self._overrides = dict((name, path) for (name, path) in (overrides or {}).items() if path)

    @classmethod
    def from_environment(cls, environ=None, overrides=None):
        """Builds the configuration from `PATH`, `PATHEXT` and `TURNKEY_TOOL_*` variables.

        Args:
            environ (dict, optional): The environment to use instead of `os.environ`.
            overrides (dict, optional): Explicit executables, these beat the environment variables.
        """
        environ = os.environ if environ is None else environ
        search_path = [directory for directory in environ.get('PATH', '').split(os.pathsep)
                       if directory]
        path_extensions = [extension.lower() for extension in
                           environ.get('PATHEXT', '').split(os.pathsep) if extension]

        combined_overrides = {}
        for name in TOOL_NAMES:
            value = environ.get(ENVIRONMENT_OVERRIDE_PREFIX + name.upper())
            if value:
                combined_overrides[name] = value
        for name, value in (overrides or {}).items():
            if value:
                combined_overrides[name] = value

        lookup = compute_smart_path_lookup(
            (list_binaries_on(directory) for directory in search_path), path_extensions)
        return cls(lookup, combined_overrides)

    @property
    def lookup(self):
        return dict(self._lookup)

    @property
    def overrides(self):
        return dict(self._overrides)

    def resolve(self, name, alternative_names=None):
        """Finds the executable for a tool.

        Args:
            name (str): The tool's primary name, *e.g.* `patchelf`.
            alternative_names (:obj:`list` of :obj:`str`, optional): Other names the tool may be
                installed under. Defaults to the known alternatives from `TOOL_NAMES`.
        Returns:
            str: The path to the executable.
        """
        if name in self._overrides:
            logger.debug('%s overridden by configuration: %s' % (name, self._overrides[name]))
            return self._overrides[name]

        if alternative_names is None:
            alternative_names = TOOL_NAMES.get(name, (name,))[1:]
        if name in self._lookup:
            path = os.path.abspath(self._lookup[name])
            logger.debug('%s discovered by primary name: %s' % (name, path))
            return path
        for alternative_name in alternative_names:
            if alternative_name in self._lookup:
                path = os.path.abspath(self._lookup[alternative_name])
                logger.debug('%s discovered by alternative name %s: %s' % (
                    name, alternative_name, path))
                return path

        raise ToolNotFoundError((
            'The "%s" tool could not be found. Either add it to your PATH, or configure it '
            'explicitly with the "%s%s" environment variable.'
        ) % (name, ENVIRONMENT_OVERRIDE_PREFIX, name.upper()))
