# -*- coding: utf-8 -*-
"""Parsing of versioned shared library file names and the fuzzy identities derived from them.

ELF libraries carry their version after the `.so` extension (`libfoo.so.1.2.3`), while Mach-O
libraries put it between the base name and the `.dylib` extension (`libfoo.1.2.A.dylib`). In
both cases, the fuzzy name is the version-stripped form (`libfoo.so` and `libfoo.dylib`).
"""
import re

from turnkey_bundler.errors import InvalidLibraryNameError


SO_EXTENSION = '.so'
DYLIB_EXTENSION = '.dylib'


class VersionedElfLibrary(object):
    """An ELF library name split into its base name and numeric version components.

    Attributes:
        name (str): The name in front of the `.so` extension, e.g. `libfoo`.
        version (:obj:`list` of :obj:`int`): The version components, possibly empty.
    """
    def __init__(self, name, version=()):
        self.name = name
        self.version = list(version)

    @classmethod
    def parse(cls, full_name):
        """Parses a name like `libfoo.so.1.2.3` into `libfoo` and `[1, 2, 3]`."""
        so_index = full_name.rfind(SO_EXTENSION)
        if so_index < 0:
            raise InvalidLibraryNameError(
                'Library name "%s" must contain "%s".' % (full_name, SO_EXTENSION))

        name = full_name[:so_index]
        version_string = full_name[so_index + len(SO_EXTENSION):]
        if version_string.startswith('.'):
            version_string = version_string[1:]

        version = []
        if version_string:
            for component in version_string.split('.'):
                if not re.match(r'^[0-9]+$', component):
                    raise InvalidLibraryNameError((
                        'Library name "%s" contains non-numerical version component "%s".'
                    ) % (full_name, component))
                version.append(int(component))

        return cls(name, version)

    def __eq__(self, other):
        return isinstance(other, VersionedElfLibrary) and \
            (self.name, self.version) == (other.name, other.version)

    def __hash__(self):
        return hash((self.name, tuple(self.version)))

    def __repr__(self):
        return '<VersionedElfLibrary(name="%s", version=%r)>' % (self.name, self.version)

    def __str__(self):
        if not self.version:
            return self.base_name
        return '%s.%s' % (self.base_name, '.'.join(str(component) for component in self.version))

    @property
    def base_name(self):
        """str: The library's name without any version, e.g. `libfoo.so`."""
        return self.name + SO_EXTENSION


class VersionedMachOLibrary(object):
    """A Mach-O library name split into its base name and version tokens.

    Unlike ELF versions, the tokens are not required to be numeric (`libfoo.1.2.A.dylib`).

    Attributes:
        name (str): The first dot-separated token of the name, e.g. `libfoo`.
        version (:obj:`list` of :obj:`str`): The remaining tokens, possibly empty.
    """
    def __init__(self, name, version=()):
        self.name = name
        self.version = list(version)

    @classmethod
    def parse(cls, full_name):
        """Parses a name like `libfoo.1.2.A.dylib` into `libfoo` and `['1', '2', 'A']`."""
        if not full_name.endswith(DYLIB_EXTENSION):
            raise InvalidLibraryNameError(
                'Library name "%s" must end with "%s".' % (full_name, DYLIB_EXTENSION))

        components = full_name[:-len(DYLIB_EXTENSION)].split('.')
        return cls(components[0], components[1:])

    def __eq__(self, other):
        return isinstance(other, VersionedMachOLibrary) and \
            (self.name, self.version) == (other.name, other.version)

    def __hash__(self):
        return hash((self.name, tuple(self.version)))

    def __repr__(self):
        return '<VersionedMachOLibrary(name="%s", version=%r)>' % (self.name, self.version)

    def __str__(self):
        if not self.version:
            return self.base_name
        return '%s.%s%s' % (self.name, '.'.join(self.version), DYLIB_EXTENSION)

    @property
    def base_name(self):
        """str: The library's name without any version, e.g. `libfoo.dylib`."""
        return self.name + DYLIB_EXTENSION


def elf_fuzzy_name(linkage_name):
    return VersionedElfLibrary.parse(linkage_name).base_name


def macho_fuzzy_name(file_name):
    return VersionedMachOLibrary.parse(file_name).base_name


def coff_fuzzy_name(file_name):
    # Windows resolves DLL names case-insensitively and has no versioning convention.
    return file_name.lower()


def levenshtein_distance(first, second):
    """Computes the number of single character edits needed to turn one string into another."""
    if len(first) < len(second):
        first, second = second, first
    previous_row = list(range(len(second) + 1))
    for i, first_char in enumerate(first, 1):
        current_row = [i]
        for j, second_char in enumerate(second, 1):
            current_row.append(min(
                previous_row[j] + 1,
                current_row[j - 1] + 1,
                previous_row[j - 1] + (first_char != second_char),
            ))
        previous_row = current_row
    return previous_row[-1]
