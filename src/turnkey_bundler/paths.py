# -*- coding: utf-8 -*-
"""Structured paths as they appear inside of binaries, independent of the host's path flavor."""


LINUX_ORIGIN = '$ORIGIN'
MACOS_EXECUTABLE_PATH = '@executable_path'
MACOS_LOADER_PATH = '@loader_path'
MACOS_RPATH = '@rpath'


class PlatformPath(object):
    """A UNIX-like path embedded in a binary, split into an optional root and its components.

    Attributes:
        root (str): The root of an absolute path (always `/`), or `None` for relative paths.
        components (:obj:`tuple` of :obj:`str`): The names making up the path.
    """
    def __init__(self, root, components):
        self.root = root
        self.components = tuple(components)

    @classmethod
    def unix(cls, path):
        """Parses a UNIX-like path string.

        Redundant separators and `.` components are dropped, but `..` is kept as-is because the
        magic prefixes (`$ORIGIN`, `@loader_path`, ...) are only resolved by the loader.
        """
        if not path or '\x00' in path:
            raise ValueError('"%s" is not a valid path.' % path)
        root = '/' if path.startswith('/') else None
        components = [component for component in path.split('/') if component not in ('', '.')]
        return cls(root, components)

    @classmethod
    def unix_absolute(cls, *names):
        return cls('/', names)

    @classmethod
    def unix_relative(cls, *names):
        return cls(None, names)

    @classmethod
    def linux_origin_relative(cls, *names):
        """Creates a path relative to the location of the loading library (`$ORIGIN`)."""
        return cls.unix_relative(LINUX_ORIGIN, *names)

    @classmethod
    def macos_executable_relative(cls, *names):
        """Creates a path relative to the launched executable (`@executable_path`)."""
        return cls.unix_relative(MACOS_EXECUTABLE_PATH, *names)

    @classmethod
    def macos_loader_relative(cls, *names):
        """Creates a path relative to the location of the loading library (`@loader_path`)."""
        return cls.unix_relative(MACOS_LOADER_PATH, *names)

    @classmethod
    def macos_rpath_relative(cls, *names):
        """Creates a path that is resolved against the RPATH entries (`@rpath`)."""
        return cls.unix_relative(MACOS_RPATH, *names)

    @property
    def is_absolute(self):
        return self.root is not None

    @property
    def name(self):
        """str: The last component of the path."""
        if not self.components:
            raise ValueError('The root path has no name.')
        return self.components[-1]

    def __eq__(self, other):
        return isinstance(other, PlatformPath) and \
            (self.root, self.components) == (other.root, other.components)

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.root, self.components))

    def __repr__(self):
        return '<PlatformPath("%s")>' % self

    def __str__(self):
        return (self.root or '') + '/'.join(self.components)
