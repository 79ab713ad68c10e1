# -*- coding: utf-8 -*-
"""The native library values for each of the supported binary formats.

Every format provides two kinds of library values that share the same small contract:

* *speculative* libraries are only known because something links against them. They expose a
  `linkage_name` (the literal reference) and a `fuzzy_name` (the normalized identity).
* *analyzable* libraries are backed by a file on disk. In addition to the identity, they expose
  their `path`, a `fuzzy_mismatch` score and their `library_dependencies` as speculative
  libraries, as well as the format specific metadata that the tools can read and write.

The formats don't share a base class, each one implements the contract on its own.
"""
import logging
import os

from turnkey_bundler.errors import InvalidLibraryNameError
from turnkey_bundler.errors import MissingFileError
from turnkey_bundler.errors import UnsupportedFormatError
from turnkey_bundler.naming import coff_fuzzy_name
from turnkey_bundler.naming import elf_fuzzy_name
from turnkey_bundler.naming import levenshtein_distance
from turnkey_bundler.naming import macho_fuzzy_name


logger = logging.getLogger(__name__)

ELF = 'elf'
MACHO = 'macho'
COFF = 'coff'

macho_magic_numbers = {
    b'\xfe\xed\xfa\xce', b'\xce\xfa\xed\xfe',
    b'\xfe\xed\xfa\xcf', b'\xcf\xfa\xed\xfe',
    b'\xca\xfe\xba\xbe',
}


def detect_library_format(path):
    """Determines the binary format of a file from its magic bytes.

    Returns:
        str: One of `ELF`, `MACHO`, or `COFF`.
    """
    if not os.path.exists(path):
        raise MissingFileError('The "%s" file was not found.' % path)

    with open(path, 'rb') as f:
        first_four_bytes = f.read(4)

    if first_four_bytes == b'\x7fELF':
        return ELF
    if first_four_bytes in macho_magic_numbers:
        return MACHO
    if first_four_bytes[:2] == b'MZ':
        return COFF
    raise UnsupportedFormatError(
        'The "%s" file is not an ELF, Mach-O, or COFF shared library.' % path)


class stored_property(object):
    """Simple decorator for a class property that will be cached indefinitely."""
    def __init__(self, function):
        self.__doc__ = getattr(function, '__doc__')
        self.function = function

    def __get__(self, instance, type):
        if instance is None:
            return self
        result = instance.__dict__[self.function.__name__] = self.function(instance)
        return result


class SpeculativeElfLibrary(object):
    """An ELF library referenced by a `DT_NEEDED` entry.

    Attributes:
        linkage_name (str): The needed entry, *e.g.* `libc.so.6`.
        fuzzy_name (str): The version-less name, *e.g.* `libc.so`.
    """
    def __init__(self, linkage_name):
        self.linkage_name = linkage_name
        try:
            self.fuzzy_name = elf_fuzzy_name(linkage_name)
        except InvalidLibraryNameError:
            # Unconventional names can't be versioned, so they only ever match themselves.
            self.fuzzy_name = linkage_name

    def __eq__(self, other):
        return isinstance(other, SpeculativeElfLibrary) and self.linkage_name == other.linkage_name

    def __hash__(self):
        return hash(self.linkage_name)

    def __repr__(self):
        return '<SpeculativeElfLibrary(linkage_name="%s", fuzzy_name="%s")>' % (
            self.linkage_name, self.fuzzy_name)


class AnalyzableElfLibrary(object):
    """An ELF shared library on disk, with its metadata accessed through `patchelf`.

    The `soname`, `rpath` and `needed` properties read from the file every time they are
    accessed, and assigning to them rewrites the file immediately.
    """
    def __init__(self, path, patchelf):
        if not os.path.exists(path):
            raise MissingFileError('The "%s" file was not found.' % path)
        self.path = path
        self.patchelf = patchelf

    def __eq__(self, other):
        return isinstance(other, AnalyzableElfLibrary) and self.path == other.path

    def __hash__(self):
        return hash(self.path)

    def __repr__(self):
        return '<AnalyzableElfLibrary(path="%s", fuzzy_name="%s")>' % (self.path, self.fuzzy_name)

    @property
    def linkage_name(self):
        return os.path.basename(self.path)

    @stored_property
    def fuzzy_name(self):
        return elf_fuzzy_name(self.linkage_name)

    @stored_property
    def fuzzy_mismatch(self):
        return levenshtein_distance(self.linkage_name, self.fuzzy_name)

    @property
    def soname(self):
        return self.patchelf.get_soname(self.path)

    @soname.setter
    def soname(self, value):
        self.patchelf.set_soname(self.path, value)

    @property
    def rpath(self):
        """:obj:`list` of :obj:`PlatformPath`: The RPATH, `$ORIGIN` refers to the library itself."""
        return self.patchelf.get_rpath(self.path)

    @rpath.setter
    def rpath(self, entries):
        entries = list(entries)
        if entries:
            self.patchelf.set_rpath(self.path, entries)
        else:
            self.patchelf.clear_rpath(self.path)

    @property
    def needed(self):
        """:obj:`list` of :obj:`str`: The names of the libraries that this one links against."""
        return self.patchelf.get_needed(self.path)

    @needed.setter
    def needed(self, entries):
        entries = list(entries)
        current = self.needed
        if len(entries) == len(current):
            # Replacing in place keeps the linking order intact.
            replacements = [(old, new) for (old, new) in zip(current, entries) if old != new]
            if replacements:
                self.patchelf.replace_needed(self.path, replacements)
            return
        if current:
            self.patchelf.remove_needed(self.path, current)
        if entries:
            self.patchelf.add_needed(self.path, entries)

    @property
    def library_dependencies(self):
        return set(SpeculativeElfLibrary(name) for name in self.needed)


class SpeculativeMachOLibrary(object):
    """A Mach-O library referenced by a load command.

    Attributes:
        linkage_name (PlatformPath): The referenced path, *e.g.* `/usr/lib/libz.1.dylib`.
        fuzzy_name (str): The version-less file name, *e.g.* `libz.dylib`.
    """
    def __init__(self, linkage_name):
        self.linkage_name = linkage_name
        try:
            self.fuzzy_name = macho_fuzzy_name(linkage_name.name)
        except InvalidLibraryNameError:
            # Frameworks aren't named `*.dylib`, so they're only identified by their binary name.
            self.fuzzy_name = linkage_name.name

    def __eq__(self, other):
        return isinstance(other, SpeculativeMachOLibrary) and \
            self.linkage_name == other.linkage_name

    def __hash__(self):
        return hash(self.linkage_name)

    def __repr__(self):
        return '<SpeculativeMachOLibrary(linkage_name="%s", fuzzy_name="%s")>' % (
            self.linkage_name, self.fuzzy_name)


class AnalyzableMachOLibrary(object):
    """A Mach-O dynamic library on disk.

    The metadata is read with `otool` and written with `install_name_tool`. The linkage name of
    a Mach-O library is its ID, not its file name.
    """
    def __init__(self, path, otool, install_name_tool):
        if not os.path.exists(path):
            raise MissingFileError('The "%s" file was not found.' % path)
        self.path = path
        self.otool = otool
        self.install_name_tool = install_name_tool

    def __eq__(self, other):
        return isinstance(other, AnalyzableMachOLibrary) and self.path == other.path

    def __hash__(self):
        return hash(self.path)

    def __repr__(self):
        return '<AnalyzableMachOLibrary(path="%s", fuzzy_name="%s")>' % (
            self.path, self.fuzzy_name)

    @property
    def linkage_name(self):
        return self.id

    @stored_property
    def fuzzy_name(self):
        return macho_fuzzy_name(self.linkage_name.name)

    @stored_property
    def fuzzy_mismatch(self):
        return levenshtein_distance(os.path.basename(self.path), self.fuzzy_name)

    @property
    def id(self):
        """PlatformPath: The install name that dependents record when linking against this."""
        return self.otool.get_id(self.path)

    @id.setter
    def id(self, value):
        self.install_name_tool.set_id(self.path, value)

    @property
    def rpath(self):
        return self.otool.get_rpath(self.path)

    @rpath.setter
    def rpath(self, entries):
        entries = list(entries)
        self.install_name_tool.clear_rpath(self.path)
        if entries:
            self.install_name_tool.add_rpath(self.path, entries)

    @property
    def dependencies(self):
        """:obj:`list` of :obj:`PlatformPath`: The paths of the linked libraries.

        These are absolute, or relative to one of `@executable_path`, `@loader_path` or `@rpath`.
        """
        # `otool -L` lists a dylib's own ID among its libraries, that's not a real dependency.
        library_id = self.id
        return [path for path in self.otool.get_used_libraries(self.path) if path != library_id]

    @dependencies.setter
    def dependencies(self, paths):
        paths = list(paths)
        current = self.dependencies
        if len(paths) != len(current):
            raise ValueError(
                'Mach-O dependencies can only be substituted, %d paths were given for %d '
                'dependencies of "%s".' % (len(paths), len(current), self.path))
        changes = [(old, new) for (old, new) in zip(current, paths) if old != new]
        if changes:
            self.install_name_tool.change_libraries(self.path, changes)

    @property
    def library_dependencies(self):
        return set(SpeculativeMachOLibrary(path) for path in self.dependencies)


class SpeculativeCoffLibrary(object):
    """A DLL imported by a COFF file, identified case-insensitively."""
    def __init__(self, linkage_name):
        self.linkage_name = linkage_name
        self.fuzzy_name = coff_fuzzy_name(linkage_name)

    def __eq__(self, other):
        return isinstance(other, SpeculativeCoffLibrary) and \
            self.linkage_name == other.linkage_name

    def __hash__(self):
        return hash(self.linkage_name)

    def __repr__(self):
        return '<SpeculativeCoffLibrary(linkage_name="%s")>' % self.linkage_name


class AnalyzableCoffLibrary(object):
    """A DLL on disk. Its import table can be read with `readobj`, but it is never rewritten."""
    def __init__(self, path, readobj):
        if not os.path.exists(path):
            raise MissingFileError('The "%s" file was not found.' % path)
        self.path = path
        self.readobj = readobj

    def __eq__(self, other):
        return isinstance(other, AnalyzableCoffLibrary) and self.path == other.path

    def __hash__(self):
        return hash(self.path)

    def __repr__(self):
        return '<AnalyzableCoffLibrary(path="%s", fuzzy_name="%s")>' % (
            self.path, self.fuzzy_name)

    @property
    def linkage_name(self):
        return os.path.basename(self.path)

    @stored_property
    def fuzzy_name(self):
        return coff_fuzzy_name(self.linkage_name)

    @stored_property
    def fuzzy_mismatch(self):
        return levenshtein_distance(self.linkage_name, self.fuzzy_name)

    @property
    def imports(self):
        """:obj:`list` of :obj:`str`: The imported DLL names, in load order."""
        return self.readobj.get_imports(self.path)

    @property
    def library_dependencies(self):
        return set(SpeculativeCoffLibrary(name) for name in self.imports)
