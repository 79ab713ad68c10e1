# -*- coding: utf-8 -*-
import pytest

from turnkey_bundler.errors import InvalidLibraryNameError
from turnkey_bundler.naming import VersionedElfLibrary
from turnkey_bundler.naming import VersionedMachOLibrary
from turnkey_bundler.naming import coff_fuzzy_name
from turnkey_bundler.naming import elf_fuzzy_name
from turnkey_bundler.naming import levenshtein_distance
from turnkey_bundler.naming import macho_fuzzy_name


@pytest.mark.parametrize('full_name,name,version', [
    ('libfoo.so', 'libfoo', []),
    ('libfoo.so.1', 'libfoo', [1]),
    ('libfoo.so.1.2.3', 'libfoo', [1, 2, 3]),
    ('libstdc++.so.6.0.28', 'libstdc++', [6, 0, 28]),
    ('libfoo.something.so.2', 'libfoo.something', [2]),
])
def test_parse_elf_library_name(full_name, name, version):
    library = VersionedElfLibrary.parse(full_name)
    assert library.name == name, 'The name of "%s" should be "%s".' % (full_name, name)
    assert library.version == version, 'The version of "%s" should be %r.' % (full_name, version)
    assert str(library) == full_name, 'Formatting the parsed name should restore the original.'


@pytest.mark.parametrize('full_name', [
    'libfoo.dll',
    'libfoo.so.1a',
    'libfoo.so.1..2',
    'libfoo.so.x86_64',
])
def test_parse_invalid_elf_library_name(full_name):
    with pytest.raises(InvalidLibraryNameError):
        VersionedElfLibrary.parse(full_name)


@pytest.mark.parametrize('full_name,name,version', [
    ('libfoo.dylib', 'libfoo', []),
    ('libfoo.1.dylib', 'libfoo', ['1']),
    ('libfoo.1.2.A.dylib', 'libfoo', ['1', '2', 'A']),
])
def test_parse_macho_library_name(full_name, name, version):
    library = VersionedMachOLibrary.parse(full_name)
    assert library.name == name, 'The name of "%s" should be "%s".' % (full_name, name)
    assert library.version == version, 'The version of "%s" should be %r.' % (full_name, version)
    assert str(library) == full_name, 'Formatting the parsed name should restore the original.'


def test_parse_invalid_macho_library_name():
    with pytest.raises(InvalidLibraryNameError):
        VersionedMachOLibrary.parse('libfoo.so.1')


def test_versioned_names_are_comparable():
    assert VersionedElfLibrary.parse('libz.so.1') == VersionedElfLibrary('libz', [1])
    assert VersionedElfLibrary.parse('libz.so.1') != VersionedElfLibrary.parse('libz.so.2')
    assert len({VersionedMachOLibrary.parse('libz.1.dylib'), VersionedMachOLibrary('libz', ['1'])}) == 1


def test_fuzzy_names():
    assert elf_fuzzy_name('libssl.so.1.1') == 'libssl.so'
    assert elf_fuzzy_name('libssl.so') == 'libssl.so'
    assert macho_fuzzy_name('libssl.1.1.dylib') == 'libssl.dylib'
    assert coff_fuzzy_name('KERNEL32.DLL') == 'kernel32.dll', \
        'COFF names should only be folded to lower case.'


@pytest.mark.parametrize('first,second,distance', [
    ('', '', 0),
    ('abc', '', 3),
    ('', 'abc', 3),
    ('kitten', 'sitting', 3),
    ('libfoo.so.1', 'libfoo.so', 2),
    ('libfoo.so.1.2.3', 'libfoo.so', 6),
    ('Foo.DLL', 'foo.dll', 4),
])
def test_levenshtein_distance(first, second, distance):
    assert levenshtein_distance(first, second) == distance, \
        'The distance between "%s" and "%s" should be %d.' % (first, second, distance)
