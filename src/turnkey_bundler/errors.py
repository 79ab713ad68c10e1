# -*- coding: utf-8 -*-
class FatalError(Exception):
    """Base class for exceptions that should terminate program execution."""
    pass


class AmbiguousIdentityError(FatalError):
    """Signifies that two distinct libraries could not be told apart by their fuzzy names."""
    pass


class CyclicDependencyError(FatalError):
    """Signifies that the analyzed libraries depend on each other in a loop.

    Attributes:
        libraries (:obj:`list`): The libraries participating in the cycle, in dependency order.
    """
    def __init__(self, libraries):
        self.libraries = list(libraries)
        super(CyclicDependencyError, self).__init__(
            'The libraries contain a dependency cycle: %s.' %
            ' -> '.join(str(library.fuzzy_name) for library in self.libraries + self.libraries[:1])
        )


class DuplicateInputError(FatalError):
    """Signifies that two different input files would be placed under the same name."""
    pass


class InvalidLibraryNameError(FatalError):
    """Signifies that a library file name can't be parsed as a versioned library name."""
    pass


class MalformedToolOutputError(FatalError):
    """Signifies that the output of an external tool didn't have the expected shape."""
    pass


class MissingFileError(FatalError):
    """Signifies that a file was not found."""
    pass


class MixedFormatError(FatalError):
    """Signifies that the input libraries don't all share the same binary format."""
    pass


class ToolExecutionError(FatalError):
    """Signifies that an external tool exited with a non-zero status."""
    def __init__(self, args, returncode, stderr=''):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        message = 'The command "%s" failed with status %d.' % (' '.join(self.args_list), returncode)
        if stderr.strip():
            message += ' %s' % stderr.strip()
        super(ToolExecutionError, self).__init__(message)


class ToolNotFoundError(FatalError):
    """Signifies that a required external tool could not be located."""
    pass


class UnknownRootError(FatalError):
    """Signifies that a requested root library is not among the input files."""
    pass


class UnsupportedFormatError(FatalError):
    """Signifies that a file is not a shared library in a supported binary format."""
    pass
