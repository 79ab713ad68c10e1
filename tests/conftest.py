# -*- coding: utf-8 -*-
import json
import os

import pytest

from turnkey_bundler.paths import PlatformPath


magic_numbers = {
    'elf': b'\x7fELF',
    'macho': b'\xcf\xfa\xed\xfe',
    'coff': b'MZ',
}


def write_fake_library(path, magic, metadata):
    with open(path, 'wb') as f:
        f.write(magic + b'\n' + json.dumps(metadata, sort_keys=True).encode('utf-8'))


def read_fake_library(path):
    with open(path, 'rb') as f:
        magic, content = f.read().split(b'\n', 1)
    return magic, json.loads(content.decode('utf-8'))


class FakeTool(object):
    """Keeps the library metadata as JSON behind the magic bytes instead of in real headers.

    Every modification is recorded in `calls` so that tests can check what would have been run.
    """
    def __init__(self):
        self.calls = []

    def load(self, path):
        return read_fake_library(path)[1]

    def update(self, path, **changes):
        magic, metadata = read_fake_library(path)
        metadata.update(changes)
        write_fake_library(path, magic, metadata)


class FakePatchElf(FakeTool):
    def get_soname(self, path):
        return self.load(path).get('soname', os.path.basename(path))

    def set_soname(self, path, soname):
        self.calls.append(('set_soname', os.path.basename(path), soname))
        self.update(path, soname=soname)

    def get_rpath(self, path):
        return [PlatformPath.unix(entry) for entry in self.load(path).get('rpath', [])]

    def set_rpath(self, path, entries):
        self.calls.append(('set_rpath', os.path.basename(path), [str(e) for e in entries]))
        self.update(path, rpath=[str(entry) for entry in entries])

    def add_rpath(self, path, entries):
        rpath = self.load(path).get('rpath', [])
        self.update(path, rpath=rpath + [str(entry) for entry in entries])

    def clear_rpath(self, path):
        self.calls.append(('clear_rpath', os.path.basename(path)))
        self.update(path, rpath=[])

    def get_needed(self, path):
        return list(self.load(path).get('needed', []))

    def add_needed(self, path, entries):
        self.calls.append(('add_needed', os.path.basename(path), list(entries)))
        self.update(path, needed=self.get_needed(path) + list(entries))

    def remove_needed(self, path, entries):
        self.calls.append(('remove_needed', os.path.basename(path), list(entries)))
        self.update(path, needed=[name for name in self.get_needed(path) if name not in entries])

    def replace_needed(self, path, replacements):
        self.calls.append(('replace_needed', os.path.basename(path), list(replacements)))
        mapping = dict(replacements)
        self.update(path, needed=[mapping.get(name, name) for name in self.get_needed(path)])


class FakeOTool(FakeTool):
    def get_id(self, path):
        return PlatformPath.unix(self.load(path)['id'])

    def get_rpath(self, path):
        return [PlatformPath.unix(entry) for entry in self.load(path).get('rpath', [])]

    def get_used_libraries(self, path):
        # Like the real `otool -L`, the library's own ID comes first.
        metadata = self.load(path)
        return [PlatformPath.unix(entry) for entry in
                [metadata['id']] + metadata.get('libraries', [])]


class FakeInstallNameTool(FakeTool):
    def set_id(self, path, library_id):
        self.calls.append(('set_id', os.path.basename(path), str(library_id)))
        self.update(path, id=str(library_id))

    def add_rpath(self, path, entries):
        rpath = self.load(path).get('rpath', [])
        self.update(path, rpath=rpath + [str(entry) for entry in entries])

    def delete_rpath(self, path, entries):
        entries = [str(entry) for entry in entries]
        self.update(path, rpath=[e for e in self.load(path).get('rpath', []) if e not in entries])

    def clear_rpath(self, path):
        self.calls.append(('clear_rpath', os.path.basename(path)))
        self.update(path, rpath=[])

    def change_libraries(self, path, changes):
        changes = [(str(old), str(new)) for (old, new) in changes]
        self.calls.append(('change_libraries', os.path.basename(path), changes))
        mapping = dict(changes)
        libraries = self.load(path).get('libraries', [])
        self.update(path, libraries=[mapping.get(entry, entry) for entry in libraries])


class FakeReadObj(FakeTool):
    def get_imports(self, path):
        return list(self.load(path).get('imports', []))


@pytest.fixture
def fake_tools():
    return {
        'install_name_tool': FakeInstallNameTool(),
        'otool': FakeOTool(),
        'patchelf': FakePatchElf(),
        'readobj': FakeReadObj(),
    }


@pytest.fixture
def library_directory(tmpdir):
    return str(tmpdir.mkdir('libraries'))


@pytest.fixture
def output_directory(tmpdir):
    return str(tmpdir.join('output'))


@pytest.fixture
def make_library(library_directory):
    """Creates a fake library file with the given metadata and returns its path."""
    def make_library(name, library_format='elf', directory=None, **metadata):
        directory = directory or library_directory
        if not os.path.exists(directory):
            os.makedirs(directory)
        path = os.path.join(directory, name)
        write_fake_library(path, magic_numbers[library_format], metadata)
        return path
    return make_library


@pytest.fixture
def read_library():
    def read_library(path):
        return read_fake_library(path)[1]
    return read_library
