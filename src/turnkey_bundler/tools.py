# -*- coding: utf-8 -*-
"""Thin synchronous wrappers around the external tools that read and write library metadata.

Each wrapper only exposes the operations needed for bundling. Every call blocks until the tool
exits, and any modification is visible on disk (and to subsequent reads) once the call returns.
"""
import logging
import os
import re
from subprocess import PIPE
from subprocess import Popen

from turnkey_bundler.errors import MalformedToolOutputError
from turnkey_bundler.errors import ToolExecutionError
from turnkey_bundler.paths import PlatformPath


logger = logging.getLogger(__name__)


def run_tool(args):
    """Runs a tool and returns its standard output.

    Anything written to standard error is logged as a warning, line by line.
    """
    args = [str(arg) for arg in args]
    logger.debug('Running "%s".' % ' '.join(args))
    try:
        process = Popen(args, stdout=PIPE, stderr=PIPE)
    except OSError as error:
        raise ToolExecutionError(args, -1, str(error))
    stdout, stderr = process.communicate()
    stdout, stderr = stdout.decode('utf-8'), stderr.decode('utf-8')

    for line in stderr.splitlines():
        if line.strip():
            logger.warning('%s: %s' % (os.path.basename(args[0]), line))
    for line in stdout.splitlines():
        if line.strip():
            logger.debug(line)

    if process.returncode != 0:
        raise ToolExecutionError(args, process.returncode, stderr)
    return stdout


def parse_unix_path(value, description, file):
    try:
        return PlatformPath.unix(value)
    except ValueError:
        raise MalformedToolOutputError(
            'The output contains the non-path %s "%s" for "%s".' % (description, value, file))


def separate_by_headers(lines, headers):
    """Splits tool output into sections started by lines of the form `header:`.

    Args:
        lines (:obj:`list` of :obj:`str`): The non-blank output lines.
        headers (:obj:`list` of :obj:`str`): The expected section headers (usually file paths).
    Returns:
        dict: Maps each header to the list of lines in its section.
    """
    sections = dict((header, []) for header in headers)
    current_section = None
    for line in lines:
        if line.endswith(':') and not line[:1].isspace():
            heading = line[:-1]
            if heading not in sections:
                raise MalformedToolOutputError(
                    'The output contains the unknown section "%s".' % heading)
            current_section = sections[heading]
        elif current_section is None:
            raise MalformedToolOutputError('The output contains data before the first section.')
        else:
            current_section.append(line)
    return sections


def non_blank_lines(content):
    return [line for line in content.splitlines() if line.strip()]


class PatchElf(object):
    """Reads and writes the dynamic section of ELF files using `patchelf`."""
    def __init__(self, executable='patchelf'):
        self.executable = executable

    def __repr__(self):
        return '<PatchElf(executable="%s")>' % self.executable

    def version(self):
        return run_tool([self.executable, '--version']).strip()

    def get_soname(self, path):
        lines = non_blank_lines(run_tool([self.executable, '--print-soname', path]))
        if len(lines) != 1:
            raise MalformedToolOutputError('Expected exactly one SONAME for "%s".' % path)
        return lines[0].strip()

    def set_soname(self, path, soname):
        run_tool([self.executable, '--set-soname', soname, path])

    def get_rpath(self, path):
        output = run_tool([self.executable, '--print-rpath', path]).strip()
        return [parse_unix_path(entry, 'RPATH entry', path)
                for entry in output.split(':') if entry]

    def set_rpath(self, path, entries):
        run_tool([self.executable, '--set-rpath', ':'.join(str(entry) for entry in entries), path])

    def add_rpath(self, path, entries):
        run_tool([self.executable, '--add-rpath', ':'.join(str(entry) for entry in entries), path])

    def clear_rpath(self, path):
        run_tool([self.executable, '--remove-rpath', path])

    def get_needed(self, path):
        output = run_tool([self.executable, '--print-needed', path])
        return [line.strip() for line in non_blank_lines(output)]

    def add_needed(self, path, entries):
        args = [self.executable]
        for entry in entries:
            args += ['--add-needed', entry]
        run_tool(args + [path])

    def remove_needed(self, path, entries):
        args = [self.executable]
        for entry in entries:
            args += ['--remove-needed', entry]
        run_tool(args + [path])

    def replace_needed(self, path, replacements):
        """Replaces needed entries in place.

        Args:
            path (str): The ELF file to modify.
            replacements (:obj:`list` of :obj:`tuple`): `(old, new)` pairs of library names.
        """
        args = [self.executable]
        for old, new in replacements:
            args += ['--replace-needed', old, new]
        run_tool(args + [path])


class OTool(object):
    """Reads the load commands of Mach-O files using `otool`."""
    used_library_regex = re.compile(r'^(.*) \(compatibility version.*\)$')
    rpath_regex = re.compile(r'^path (.*) \(offset [0-9]+\)$')

    def __init__(self, executable='otool'):
        self.executable = executable

    def __repr__(self):
        return '<OTool(executable="%s")>' % self.executable

    def version(self):
        return run_tool([self.executable, '--version']).strip()

    def run_sections(self, flag, paths):
        output = run_tool([self.executable, flag] + list(paths))
        return separate_by_headers(non_blank_lines(output), paths)

    def get_id(self, path):
        return self.get_ids([path])[path]

    def get_ids(self, paths):
        """Gets the library IDs (install names) of several files with a single `otool` call."""
        ids = {}
        for path, lines in self.run_sections('-D', paths).items():
            if len(lines) != 1:
                raise MalformedToolOutputError(
                    'Expected exactly one library ID for "%s", found %d.' % (path, len(lines)))
            ids[path] = parse_unix_path(lines[0].strip(), 'library ID', path)
        return ids

    def get_rpath(self, path):
        return self.get_rpaths([path])[path]

    def get_rpaths(self, paths):
        """Gets the `LC_RPATH` entries of several files with a single `otool` call."""
        rpaths = {}
        for path, lines in self.run_sections('-l', paths).items():
            entries = []
            for index, line in enumerate(lines):
                if line.strip() != 'cmd LC_RPATH':
                    continue
                # The layout is `cmd LC_RPATH`, `cmdsize N`, `path PATH (offset N)`.
                if index + 2 >= len(lines):
                    raise MalformedToolOutputError(
                        'The output is too short after LC_RPATH for "%s".' % path)
                match = self.rpath_regex.match(lines[index + 2].strip())
                if not match:
                    raise MalformedToolOutputError('The output contains the unreadable RPATH '
                                                   '"%s" for "%s".' % (lines[index + 2], path))
                entries.append(parse_unix_path(match.group(1), 'RPATH entry', path))
            rpaths[path] = entries
        return rpaths

    def get_used_libraries(self, path):
        return self.get_used_libraries_of([path])[path]

    def get_used_libraries_of(self, paths):
        """Gets the linked libraries of several files, including a dylib's own ID."""
        libraries = {}
        for path, lines in self.run_sections('-L', paths).items():
            entries = []
            for line in lines:
                match = self.used_library_regex.match(line.strip())
                if not match:
                    raise MalformedToolOutputError(
                        'The output contains the unreadable linkage "%s" for "%s".' % (line, path))
                entries.append(parse_unix_path(match.group(1), 'linkage', path))
            libraries[path] = entries
        return libraries


class InstallNameTool(object):
    """Rewrites the load commands of Mach-O files using `install_name_tool`."""
    def __init__(self, executable='install_name_tool'):
        self.executable = executable

    def __repr__(self):
        return '<InstallNameTool(executable="%s")>' % self.executable

    def set_id(self, path, library_id):
        run_tool([self.executable, '-id', str(library_id), path])

    def add_rpath(self, path, entries):
        args = [self.executable]
        for entry in entries:
            args += ['-add_rpath', str(entry)]
        run_tool(args + [path])

    def delete_rpath(self, path, entries):
        args = [self.executable]
        for entry in entries:
            args += ['-delete_rpath', str(entry)]
        run_tool(args + [path])

    def clear_rpath(self, path):
        run_tool([self.executable, '-delete_all_rpaths', path])

    def change_libraries(self, path, changes):
        """Substitutes linked library paths.

        Args:
            path (str): The Mach-O file to modify.
            changes (:obj:`list` of :obj:`tuple`): `(old, new)` pairs of library paths.
        """
        args = [self.executable]
        for old, new in changes:
            args += ['-change', str(old), str(new)]
        run_tool(args + [path])


def parse_coff_imports(content):
    """Extracts the imported library names from `readobj --coff-imports` output."""
    imports = []
    in_import, found_name = False, False
    for index, line in enumerate(line.strip() for line in content.strip().splitlines()):
        if line == 'Import {':
            if in_import:
                raise MalformedToolOutputError(
                    'Unterminated import, second import in line %d.' % index)
            in_import, found_name = True, False
        elif in_import and line == '}':
            if not found_name:
                raise MalformedToolOutputError(
                    'Import without name, closing bracket in line %d.' % index)
            in_import = False
        elif in_import and line.startswith('Name: '):
            if found_name:
                raise MalformedToolOutputError('Duplicate name in line %d.' % index)
            imports.append(line[len('Name: '):])
            found_name = True
    if in_import:
        raise MalformedToolOutputError('The output ends inside of an import.')
    return imports


class ReadObj(object):
    """Reads the import tables of COFF files using `llvm-readobj`."""
    def __init__(self, executable='readobj'):
        self.executable = executable

    def __repr__(self):
        return '<ReadObj(executable="%s")>' % self.executable

    def version(self):
        return run_tool([self.executable, '--version']).strip()

    def get_imports(self, path):
        """Gets the names of the DLLs that a file imports, in load order."""
        return parse_coff_imports(run_tool([self.executable, '--coff-imports', path]))


tool_classes = {
    'install_name_tool': InstallNameTool,
    'otool': OTool,
    'patchelf': PatchElf,
    'readobj': ReadObj,
}


def create_tools(configuration, names):
    """Resolves and instantiates the named tools from a `ToolConfiguration`.

    All of the tools are resolved before any of them are used, so a missing tool is reported
    before any library has been touched.
    """
    return dict((name, tool_classes[name](configuration.resolve(name))) for name in names)
