# -*- coding: utf-8 -*-
"""The per-format policies that turn analyzed libraries into relocatable ones.

After rewriting, bundled libraries refer to each other by their canonical fuzzy names relative
to their own location, while references to system libraries are left exactly as they were.
"""
import logging
import os

from turnkey_bundler.libraries import AnalyzableCoffLibrary
from turnkey_bundler.libraries import AnalyzableElfLibrary
from turnkey_bundler.libraries import AnalyzableMachOLibrary
from turnkey_bundler.libraries import COFF
from turnkey_bundler.libraries import ELF
from turnkey_bundler.libraries import MACHO
from turnkey_bundler.libraries import SpeculativeElfLibrary
from turnkey_bundler.libraries import SpeculativeMachOLibrary
from turnkey_bundler.paths import PlatformPath


logger = logging.getLogger(__name__)


class LibraryFormat(object):
    """Base class representing a binary format and its relocation policy.

    The class level attributes can be overwritten in derived classes to customize the behavior.

    Attributes:
        name (str): The identifier of the format.
        tool_names (:obj:`list` of :obj:`str`): The external tools needed to analyze and rewrite
            libraries of this format.
        autoload_supported (bool): Whether the platform's loader resolves the dependencies of a
            library by itself once the library is loaded. If not, every bundled library has to
            be loaded explicitly, dependencies first.
    """
    name = None
    tool_names = ()
    autoload_supported = True

    def __repr__(self):
        return '<%s()>' % type(self).__name__

    def analyze(self, path, tools):
        """Creates an analyzable library for the file at `path` using the resolved `tools`."""
        raise NotImplementedError()

    def bundled_file_name(self, library):
        """The file name that a library is placed under in the bundle."""
        return os.path.basename(library.path)

    def rewrite(self, library, included_libraries):
        """Rewrites a library so that it finds the other `included_libraries` next to itself."""
        raise NotImplementedError()


class ElfFormat(LibraryFormat):
    name = ELF
    tool_names = ('patchelf',)
    autoload_supported = True

    def analyze(self, path, tools):
        return AnalyzableElfLibrary(path, tools['patchelf'])

    def bundled_file_name(self, library):
        return library.fuzzy_name

    def rewrite(self, library, included_libraries):
        included = set(included.fuzzy_name for included in included_libraries)

        library.rpath = []
        library.rpath = [PlatformPath.linux_origin_relative()]
        library.soname = library.fuzzy_name

        needed = []
        for dependency in library.needed:
            fuzzy_name = SpeculativeElfLibrary(dependency).fuzzy_name
            needed.append(fuzzy_name if fuzzy_name in included else dependency)
        library.needed = needed


class MachOFormat(LibraryFormat):
    name = MACHO
    tool_names = ('otool', 'install_name_tool')
    autoload_supported = True

    def analyze(self, path, tools):
        return AnalyzableMachOLibrary(path, tools['otool'], tools['install_name_tool'])

    def bundled_file_name(self, library):
        return library.fuzzy_name

    def rewrite(self, library, included_libraries):
        included = set(included.fuzzy_name for included in included_libraries)

        library.rpath = []
        library.id = PlatformPath.macos_loader_relative(library.fuzzy_name)

        dependencies = []
        for dependency in library.dependencies:
            fuzzy_name = SpeculativeMachOLibrary(dependency).fuzzy_name
            if fuzzy_name in included:
                dependencies.append(PlatformPath.macos_loader_relative(fuzzy_name))
            else:
                dependencies.append(dependency)
        library.dependencies = dependencies


class CoffFormat(LibraryFormat):
    name = COFF
    tool_names = ('readobj',)
    # Windows has no equivalent of a relative RPATH, so the DLLs must be preloaded in order.
    autoload_supported = False

    def analyze(self, path, tools):
        return AnalyzableCoffLibrary(path, tools['readobj'])

    def rewrite(self, library, included_libraries):
        logger.debug('Leaving %r unchanged, COFF libraries are not rewritten.' % library)


library_formats = {
    ELF: ElfFormat(),
    MACHO: MachOFormat(),
    COFF: CoffFormat(),
}
