# -*- coding: utf-8 -*-
import os

import pytest

from turnkey_bundler.errors import InvalidLibraryNameError
from turnkey_bundler.errors import MissingFileError
from turnkey_bundler.errors import UnsupportedFormatError
from turnkey_bundler.libraries import AnalyzableCoffLibrary
from turnkey_bundler.libraries import AnalyzableElfLibrary
from turnkey_bundler.libraries import AnalyzableMachOLibrary
from turnkey_bundler.libraries import COFF
from turnkey_bundler.libraries import ELF
from turnkey_bundler.libraries import MACHO
from turnkey_bundler.libraries import SpeculativeCoffLibrary
from turnkey_bundler.libraries import SpeculativeElfLibrary
from turnkey_bundler.libraries import SpeculativeMachOLibrary
from turnkey_bundler.libraries import detect_library_format
from turnkey_bundler.libraries import stored_property
from turnkey_bundler.paths import PlatformPath


@pytest.mark.parametrize('library_format,expected', [
    ('elf', ELF),
    ('macho', MACHO),
    ('coff', COFF),
])
def test_detect_library_format(make_library, library_format, expected):
    path = make_library('library', library_format)
    assert detect_library_format(path) == expected


def test_detect_unsupported_format(library_directory):
    path = os.path.join(library_directory, 'script.sh')
    with open(path, 'w') as f:
        f.write('#! /bin/sh\n')
    with pytest.raises(UnsupportedFormatError):
        detect_library_format(path)
    with pytest.raises(MissingFileError):
        detect_library_format(os.path.join(library_directory, 'missing.so'))


def test_stored_property():
    class Counter(object):
        count = 0

        @stored_property
        def value(self):
            Counter.count += 1
            return Counter.count

    counter = Counter()
    assert counter.value == 1
    assert counter.value == 1, 'The value should only be computed once.'
    assert isinstance(Counter.value, stored_property)


def test_speculative_identities():
    assert SpeculativeElfLibrary('libz.so.1').fuzzy_name == 'libz.so'
    assert SpeculativeElfLibrary('ld-linux-x86-64.so.2').fuzzy_name == 'ld-linux-x86-64.so'
    assert SpeculativeElfLibrary('weird-name').fuzzy_name == 'weird-name', \
        'Unparseable names should only match themselves.'
    assert SpeculativeElfLibrary('libz.so.1') == SpeculativeElfLibrary('libz.so.1')
    assert SpeculativeElfLibrary('libz.so.1') != SpeculativeElfLibrary('libz.so.2')

    framework = PlatformPath.unix('/System/Library/Frameworks/Foundation.framework/Foundation')
    assert SpeculativeMachOLibrary(framework).fuzzy_name == 'Foundation'
    assert SpeculativeMachOLibrary(PlatformPath.unix('/usr/lib/libz.1.dylib')).fuzzy_name == \
        'libz.dylib'

    assert SpeculativeCoffLibrary('KERNEL32.dll').fuzzy_name == 'kernel32.dll'


def test_analyzable_elf_library(make_library, fake_tools):
    path = make_library('libfoo.so.1.2', soname='libfoo.so.1', needed=['libc.so.6', 'libbar.so.3'])
    library = AnalyzableElfLibrary(path, fake_tools['patchelf'])

    assert library.linkage_name == 'libfoo.so.1.2'
    assert library.fuzzy_name == 'libfoo.so'
    assert library.fuzzy_mismatch == 4
    assert library.soname == 'libfoo.so.1'
    assert library.library_dependencies == {
        SpeculativeElfLibrary('libc.so.6'), SpeculativeElfLibrary('libbar.so.3'),
    }

    library.rpath = [PlatformPath.linux_origin_relative()]
    assert library.rpath == [PlatformPath.linux_origin_relative()]
    library.rpath = []
    assert library.rpath == []
    assert ('clear_rpath', 'libfoo.so.1.2') in fake_tools['patchelf'].calls


def test_elf_needed_replacement(make_library, fake_tools):
    patchelf = fake_tools['patchelf']
    library = AnalyzableElfLibrary(
        make_library('libfoo.so', needed=['libc.so.6', 'libbar.so.3']), patchelf)

    library.needed = ['libc.so.6', 'libbar.so']
    assert library.needed == ['libc.so.6', 'libbar.so']
    assert patchelf.calls == [('replace_needed', 'libfoo.so', [('libbar.so.3', 'libbar.so')])], \
        'Only the changed entry should be replaced.'

    library.needed = ['libc.so.6']
    assert library.needed == ['libc.so.6']


def test_invalid_elf_file_name(make_library, fake_tools):
    library = AnalyzableElfLibrary(make_library('foo.dll'), fake_tools['patchelf'])
    with pytest.raises(InvalidLibraryNameError):
        library.fuzzy_name


def test_missing_library_file(library_directory, fake_tools):
    with pytest.raises(MissingFileError):
        AnalyzableElfLibrary(os.path.join(library_directory, 'libz.so'), fake_tools['patchelf'])


def test_analyzable_macho_library(make_library, fake_tools):
    path = make_library(
        'libfoo.1.dylib', 'macho', id='/usr/local/lib/libfoo.1.dylib',
        libraries=['/usr/local/lib/libbar.2.dylib', '/usr/lib/libSystem.B.dylib'],
        rpath=['/usr/local/lib'],
    )
    library = AnalyzableMachOLibrary(path, fake_tools['otool'], fake_tools['install_name_tool'])

    assert library.linkage_name == PlatformPath.unix('/usr/local/lib/libfoo.1.dylib')
    assert library.fuzzy_name == 'libfoo.dylib'
    assert library.fuzzy_mismatch == 2
    assert library.dependencies == [
        PlatformPath.unix('/usr/local/lib/libbar.2.dylib'),
        PlatformPath.unix('/usr/lib/libSystem.B.dylib'),
    ], 'The library ID should not be listed among the dependencies.'
    assert set(dependency.fuzzy_name for dependency in library.library_dependencies) == \
        {'libbar.dylib', 'libSystem.dylib'}

    library.rpath = []
    assert library.rpath == []

    with pytest.raises(ValueError):
        library.dependencies = [PlatformPath.macos_loader_relative('libbar.dylib')]


def test_analyzable_coff_library(make_library, fake_tools):
    path = make_library('Foo.DLL', 'coff', imports=['KERNEL32.dll', 'bar.dll'])
    library = AnalyzableCoffLibrary(path, fake_tools['readobj'])

    assert library.linkage_name == 'Foo.DLL'
    assert library.fuzzy_name == 'foo.dll'
    assert library.fuzzy_mismatch == 4
    assert library.imports == ['KERNEL32.dll', 'bar.dll']
    assert library.library_dependencies == {
        SpeculativeCoffLibrary('KERNEL32.dll'), SpeculativeCoffLibrary('bar.dll'),
    }
