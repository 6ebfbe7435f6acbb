# -*- coding: utf-8 -*-
# Copyright (c) 2015, Matt Boyer
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
#     1. Redistributions of source code must retain the above copyright notice,
#     this list of conditions and the following disclaimer.
#
#     2. Redistributions in binary form must reproduce the above copyright
#     notice, this list of conditions and the following disclaimer in the
#     documentation and/or other materials provided with the distribution.
#
#     3. Neither the name of the copyright holder nor the names of its
#     contributors may be used to endorse or promote products derived from this
#     software without specific prior written permission.
#
#     THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS
#     IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
#     THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR
#     PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
#     CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL,
#     EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
#     PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR
#     PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
#     LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING
#     NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS
#     SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
#
"""
Cross-checks two implementations of git-blame against each other
"""
import re
import os
import shlex
import subprocess
import collections
import functools
import sys
from concurrent import futures
# Terminal stuff
import fcntl
import termios
import struct
import unicodedata


class GitError(Exception):
    pass


class ConfigurationError(Exception):
    pass


class BlameExecutionError(Exception):
    '''Raised when a single blame invocation doesn't complete successfully'''

    def __init__(self, executable, message, returncode=None):
        super(BlameExecutionError, self).__init__(message)
        self.executable = executable
        self.returncode = returncode


class BlameParseError(ValueError):

    def __init__(self, line_format, line):
        super(BlameParseError, self).__init__(
            "`{line}` does not look like a {name} blame line".format(
                line=line,
                name=line_format.name,
            )
        )
        self.line = line


class GitRunner(object):
    _toplevel_args = ['rev-parse', '--show-toplevel']
    _version_args = ['--version']
    _git_executable = 'git'
    _min_ls_files_format_ver = (2, 38, 0)

    def __init__(self, work_tree=None):
        self._git_toplevel = work_tree
        self._git_env = None
        if work_tree:
            # Both blame executables find the repository through these, so the
            # plumbing commands we run ourselves get the same view of it
            self._git_env = dict(os.environ)
            self._git_env['GIT_WORK_TREE'] = work_tree
            self._git_env['GIT_DIR'] = os.path.join(work_tree, '.git')
        self._get_git_root()
        self.version = self._get_git_version()

    def git_supports_ls_files_format(self):
        return GitRunner._min_ls_files_format_ver <= self.version

    def _get_git_version(self):
        def version_string_to_tuple(ver_string):
            try:
                return tuple([int(v) for v in ver_string.split('.')])
            except ValueError:
                raise GitError("Malformed Git version")

        raw_version = self.run_git(GitRunner._version_args)
        version_re = re.compile(r'^git version (\d+.\d+.\d+)')

        if raw_version and 1 == len(raw_version):
            match = version_re.match(raw_version[0])
            if match:
                return version_string_to_tuple(match.group(1))

        raise GitError("Couldn't determine Git version %s" % raw_version)

    def _get_git_root(self):
        top_level_dir = self.run_git(GitRunner._toplevel_args)
        self._git_toplevel = top_level_dir[0]

    def _popen_kwargs(self):
        popen_kwargs = {
            'stdout': subprocess.PIPE,
            'stderr': subprocess.PIPE,
        }

        if self._git_env:
            popen_kwargs['env'] = self._git_env

        if self._git_toplevel:
            popen_kwargs['cwd'] = self._git_toplevel

        return popen_kwargs

    def run_git(self, args):
        '''
        Runs the git executable with the arguments given and returns a list of
        lines produced on its standard output.
        '''

        out = self.run_git_raw(args)
        if not out:
            raise ValueError("No output")

        return out.decode('utf_8').splitlines()

    def run_git_raw(self, args):
        '''
        Runs the git executable with the arguments given and returns the bytes
        it wrote on its standard output, which may be empty.
        '''

        try:
            git_process = subprocess.Popen(
                [GitRunner._git_executable] + args,
                **self._popen_kwargs()
            )
            out, err = git_process.communicate()
            git_process.wait()
        except Exception as e:
            raise GitError("Couldn't run 'git {args}':{newline}{ex}".format(
                args=' '.join(args),
                newline=os.linesep,
                ex=str(e)
            ))

        if (0 != git_process.returncode) or err:
            if err:
                err = err.decode('utf_8', 'replace')
            raise GitError("'git {args}' failed with:{newline}{err}".format(
                args=' '.join(args),
                newline=os.linesep,
                err=err
            ))

        return out or b''

    def run_blame(self, executable, blame_args, file_name, timeout=None):
        '''
        Runs ``executable blame`` on a single file and returns the raw bytes it
        wrote on its standard output.

        :param executable: path to a git-compatible executable
        :type executable: str
        :param blame_args: extra arguments inserted before the file name
        :type blame_args: list
        :param file_name: path of the file, relative to the work tree
        :type file_name: str
        :param timeout: seconds to wait before giving up, or None
        :raises BlameExecutionError: if the executable can't be started, times
            out or exits with a non-zero status
        :rtype: bytes
        '''

        command = [executable, 'blame'] + list(blame_args) + [file_name]

        try:
            blame_process = subprocess.Popen(command, **self._popen_kwargs())
        except OSError as e:
            raise BlameExecutionError(
                executable,
                "Couldn't run '{cmd}': {ex}".format(
                    cmd=' '.join(command),
                    ex=str(e)
                )
            )

        try:
            out, err = blame_process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            blame_process.kill()
            blame_process.communicate()
            raise BlameExecutionError(
                executable,
                "'{cmd}' timed out after {t}s".format(
                    cmd=' '.join(command),
                    t=timeout
                )
            )

        if 0 != blame_process.returncode:
            err_lines = (err or b'').decode('utf_8', 'replace').splitlines()
            raise BlameExecutionError(
                executable,
                err_lines[0] if err_lines else 'no error output',
                returncode=blame_process.returncode,
            )

        return out or b''

    def get_tracked_files(self):
        '''
        Returns the files tracked in the repository's index, in the order Git
        lists them, split according to whether Git considers them text.

        :return: A `(text_files, binary_files)` tuple of lists
        :rtype: tuple
        '''

        text_files = list()
        binary_files = list()

        if self.git_supports_ls_files_format():
            ls_files_args = ['ls-files', '-z', '--format=%(path) %(eolinfo:index)']
        else:
            ls_files_args = ['ls-files', '-z', '--eol']

        # Paths may hold any byte but NUL, including ones that aren't valid
        # UTF-8. os.fsdecode() lets those round-trip back to the blame
        # executables unchanged.
        output = self.run_git_raw(ls_files_args)

        for raw_entry in output.split(b'\0'):
            if not raw_entry:
                continue
            entry = os.fsdecode(raw_entry)

            if self.git_supports_ls_files_format():
                file_name, _, eol_info = entry.rpartition(' ')
            else:
                # i/<eolinfo> w/<eolinfo> attr/<eolattr> \t<path>
                info, _, file_name = entry.partition('\t')
                eol_info = info.split()[0][2:] if info.split() else ''

            # Gitlinks have no eol info in the index and can't be blamed
            if not (file_name and eol_info):
                continue

            if '-text' in eol_info:
                binary_files.append(file_name)
            else:
                text_files.append(file_name)

        return (text_files, binary_files)


REFERENCE = 'reference'
CANDIDATE = 'candidate'

_executable_kinds = {
    'git': REFERENCE,
    'gix': CANDIDATE,
}


class ParsedBlameLine(object):
    '''
    The part of a line of blame output we care about. ``revision`` is always a
    non-empty string of lowercase hex digits, either abbreviated or in full.
    '''

    def __init__(self, revision, **fields):
        self.revision = revision
        self.fields = fields

    def __repr__(self):
        return "<ParsedBlameLine {rev}>".format(rev=self.revision)

    def __eq__(self, rhs):
        return (self.revision == rhs.revision) and (self.fields == rhs.fields)

    def __ne__(self, rhs):
        return not (self == rhs)


class LineFormat(object):
    '''
    How one blame implementation lays out a line of output. The regex must
    capture the blamed revision in a group named ``revision``; any other named
    groups are kept on the parsed line but never compared.
    '''

    def __init__(self, name, pattern):
        self.name = name
        self.regex = re.compile(pattern)

    def __repr__(self):
        return "<LineFormat {name}>".format(name=self.name)

    def parse(self, line):
        match = self.regex.match(line)
        if not match:
            raise BlameParseError(self, line)

        fields = match.groupdict()
        revision = fields.pop('revision')
        return ParsedBlameLine(revision, **fields)


LINE_FORMATS = {
    # ^f4d74b57 path/to file (Tim Pettersen 2013-12-29 09:42:51 -0800  1) text
    # The leading caret marks a boundary commit and the file name only shows up
    # when blame follows lines across files. The parenthesised annotation is
    # the only thing we can anchor on.
    REFERENCE: LineFormat(
        REFERENCE,
        r'^\^?(?P<revision>[0-9a-f]+) '
        r'(?:(?P<file_name>[^()]+?)\s+)?'
        r'(?P<annotation>\(.*? \d+\))'
        r'(?: (?P<source>.*))?$'
    ),
    # f4d74b57 1 1 text
    CANDIDATE: LineFormat(
        CANDIDATE,
        r'^(?P<revision>[0-9a-f]+)\s+'
        r'(?P<original_line>\d+)\s+'
        r'(?:\S+\s+)?'
        r'(?P<final_line>\d+)'
        r'(?:\s(?P<source>.*))?$'
    ),
}


def resolve_executable_kind(executable):
    '''
    Tells the reference implementation from the candidate based on nothing
    but the executable's file name
    '''
    executable_name = os.path.basename(os.path.normpath(executable))
    try:
        return _executable_kinds[executable_name]
    except KeyError:
        raise ConfigurationError(
            "{exe} is not associated with a blame line format".format(
                exe=executable
            )
        )


def line_format_for(executable):
    return LINE_FORMATS[resolve_executable_kind(executable)]


def hashes_compatible(revision, other_revision):
    '''
    Two revisions are the same commit if either one is a prefix of the other.
    This copes with one tool abbreviating hashes and the other not, whatever
    the abbreviation length.
    '''
    return revision.startswith(other_revision) or \
        other_revision.startswith(revision)


class Outcome(object):
    '''The result of comparing both blames of a single file'''
    label = None
    matching_lines = 0
    mismatched_indices = ()

    def _key(self):
        return ()

    @property
    def matched(self):
        return False

    def describe(self):
        raise NotImplementedError

    def __eq__(self, rhs):
        return (type(self) is type(rhs)) and (self._key() == rhs._key())

    def __ne__(self, rhs):
        return not (self == rhs)

    def __repr__(self):
        return "<{kind} {key}>".format(
            kind=type(self).__name__,
            key=', '.join(repr(k) for k in self._key())
        )


class LineCountMismatch(Outcome):
    label = 'line count mismatch'

    def __init__(self, baseline_lines, comparison_lines):
        self.baseline_lines = baseline_lines
        self.comparison_lines = comparison_lines

    def _key(self):
        return (self.baseline_lines, self.comparison_lines)

    def describe(self):
        return "blames have different number of lines ({b} vs. {c})".format(
            b=self.baseline_lines,
            c=self.comparison_lines,
        )


class Matched(Outcome):
    label = 'matched'

    def __init__(self, matching_lines):
        self.matching_lines = matching_lines

    def _key(self):
        return (self.matching_lines,)

    @property
    def matched(self):
        return True

    def describe(self):
        return "all {n} lines match".format(n=self.matching_lines)


class PartiallyMatched(Outcome):
    label = 'partially matched'
    _max_examples = 10

    def __init__(self, matching_lines, mismatched_indices):
        if not mismatched_indices:
            raise ValueError("A partial match needs at least one mismatch")
        self.matching_lines = matching_lines
        self.mismatched_indices = tuple(mismatched_indices)

    def _key(self):
        return (self.matching_lines, self.mismatched_indices)

    @property
    def total_lines(self):
        return self.matching_lines + len(self.mismatched_indices)

    @property
    def percentage(self):
        return 100.0 * self.matching_lines / self.total_lines

    def describe(self):
        examples = ', '.join(
            str(index + 1)
            for index in self.mismatched_indices[:PartiallyMatched._max_examples]
        )
        if len(self.mismatched_indices) > PartiallyMatched._max_examples:
            examples += ', ...'

        return "{m} of {n} lines match ({pct:.2f}%), e.g. lines {examples}" \
            .format(
                m=self.matching_lines,
                n=self.total_lines,
                pct=self.percentage,
                examples=examples,
            )


class ParseFailure(Outcome):
    label = 'parse failure'

    def __init__(self, stream, line_index, line):
        self.stream = stream
        self.line_index = line_index
        self.line = line

    def _key(self):
        return (self.stream, self.line_index, self.line)

    def describe(self):
        return "line {n} of the {stream} blame does not parse: `{line}`" \
            .format(n=self.line_index + 1, stream=self.stream, line=self.line)


class ExecutionFailure(Outcome):
    label = 'execution failure'

    def __init__(self, executable, returncode=None, message=''):
        self.executable = executable
        self.returncode = returncode
        self.message = message

    def _key(self):
        return (self.executable, self.returncode, self.message)

    def describe(self):
        status = ''
        if self.returncode is not None:
            status = " (exit status {rc})".format(rc=self.returncode)
        return "failed to run {exe}{status}: {msg}".format(
            exe=self.executable,
            status=status,
            msg=self.message,
        )


OUTCOME_KINDS = (
    Matched,
    PartiallyMatched,
    LineCountMismatch,
    ParseFailure,
    ExecutionFailure,
)


def split_blame_lines(output):
    '''
    Splits the raw output of a blame executable into its non-empty lines
    '''
    if isinstance(output, bytes):
        output = output.decode('utf_8', 'replace')

    lines = list()
    for line in output.split('\n'):
        if line.endswith('\r'):
            line = line[:-1]
        if line:
            lines.append(line)
    return lines


def compare_blames(baseline_output, comparison_output,
                   baseline_format, comparison_format):
    '''
    Lines up the blame output of both executables for one file and decides
    whether they agree on the revision each line comes from.

    A line that doesn't parse in either output fails the whole file: once a
    line is garbled there's no telling whether the ones after it still line
    up.
    '''

    baseline_lines = split_blame_lines(baseline_output)
    comparison_lines = split_blame_lines(comparison_output)

    if len(baseline_lines) != len(comparison_lines):
        return LineCountMismatch(len(baseline_lines), len(comparison_lines))

    matching_lines = 0
    mismatched_indices = list()

    for index, (baseline_line, comparison_line) in \
            enumerate(zip(baseline_lines, comparison_lines)):
        try:
            baseline_blame = baseline_format.parse(baseline_line)
        except BlameParseError:
            return ParseFailure('baseline', index, baseline_line)
        try:
            comparison_blame = comparison_format.parse(comparison_line)
        except BlameParseError:
            return ParseFailure('comparison', index, comparison_line)

        if hashes_compatible(baseline_blame.revision,
                             comparison_blame.revision):
            matching_lines += 1
        else:
            mismatched_indices.append(index)

    if mismatched_indices:
        return PartiallyMatched(matching_lines, mismatched_indices)
    return Matched(matching_lines)


class CorpusSummary(object):
    '''
    Per-outcome file counts and line-level agreement across every file that
    was compared. Files that never got as far as a line-by-line comparison
    don't contribute any lines.
    '''

    def __init__(self):
        self.file_counts = collections.defaultdict(int)
        self.matching_lines = 0
        self.mismatched_lines = 0

    def __repr__(self):
        return "<CorpusSummary {files} files: {m}/{n} lines>".format(
            files=self.total_files,
            m=self.matching_lines,
            n=self.matching_lines + self.mismatched_lines,
        )

    @classmethod
    def from_results(cls, results):
        return functools.reduce(cls._reduce_result, results, cls())

    @staticmethod
    def _reduce_result(summary, result):
        _, outcome = result
        summary.add(outcome)
        return summary

    def add(self, outcome):
        self.file_counts[type(outcome)] += 1
        self.matching_lines += outcome.matching_lines
        self.mismatched_lines += len(outcome.mismatched_indices)

    def count(self, kind):
        return self.file_counts.get(kind, 0)

    @property
    def total_files(self):
        return sum(self.file_counts.values())

    @property
    def matched_files(self):
        return self.count(Matched)

    @property
    def all_matched(self):
        return self.matched_files == self.total_files

    @property
    def percentage(self):
        '''None when no line could be compared at all'''
        compared_lines = self.matching_lines + self.mismatched_lines
        if 0 == compared_lines:
            return None
        return 100.0 * self.matching_lines / compared_lines


class Formatter(object):
    _CSI = '\x1b['
    _green = _CSI + '32m'
    _red = _CSI + '31m'
    _normal = _CSI + '0m'
    _default_width = 80

    def __init__(self, max_rows=256):
        self.max_rows = max_rows

        try:
            self._is_tty = os.isatty(sys.stdout.fileno())
        except (AttributeError, ValueError):
            self._is_tty = False
        self._tty_width = self._get_tty_width()

    @staticmethod
    def term_width(unicode_string):
        wide = 'WF'
        return sum([2 if unicodedata.east_asian_width(c) in wide else 1
                    for c in unicode_string])

    def red(self, text):
        if self._is_tty:
            return ''.join((Formatter._red, str(text), Formatter._normal))
        else:
            return str(text)

    def green(self, text):
        if self._is_tty:
            return ''.join((Formatter._green, str(text), Formatter._normal))
        else:
            return str(text)

    @staticmethod
    def terminal_output(content, stream, end=None):
        print(content, file=stream, end=end)
        stream.flush()

    def _get_tty_width(self):
        if not self._is_tty:
            return Formatter._default_width

        try:
            (_, w, _, _) = struct.unpack(
                'HHHH',
                fcntl.ioctl(
                    sys.stdout.fileno(),
                    termios.TIOCGWINSZ,
                    struct.pack('HHHH', 0, 0, 0, 0)
                )
            )
        except IOError:
            return Formatter._default_width

        if 0 < w:
            return w
        else:
            return Formatter._default_width

    def show_progress(self, outcome):
        if outcome.matched:
            mark = self.green('.')
        else:
            mark = self.red('x')
        Formatter.terminal_output(mark, sys.stdout, end='')

    @staticmethod
    def display_name(file_name):
        '''Undecodable bytes in a path show up as U+FFFD'''
        return file_name.encode('utf_8', 'surrogateescape').decode(
            'utf_8', 'replace'
        )

    def show_file(self, number, file_name, outcome):
        Formatter.terminal_output(
            "{n} {f}: {desc}".format(n=number,
                                     f=Formatter.display_name(file_name),
                                     desc=self.format(outcome)),
            sys.stdout
        )

    def format(self, outcome):
        if outcome.matched:
            return self.green(outcome.describe())
        return self.red(outcome.describe())

    def _name_column_width(self, file_names):
        longest_name = max(
            Formatter.term_width(Formatter.display_name(f)) for f in file_names
        )
        return min(longest_name, self._tty_width // 2)

    def format_row(self, file_name, outcome, name_width):
        file_name = Formatter.display_name(file_name)
        return u" {name} | {desc}".format(
            name=file_name.ljust(
                name_width - Formatter.term_width(file_name) + len(file_name)
            ),
            desc=self.format(outcome),
        )

    def show_disagreements(self, results):
        disagreements = [(f, o) for (f, o) in results if not o.matched]
        if not disagreements:
            return

        shown = disagreements[:self.max_rows]
        if shown:
            name_width = self._name_column_width([f for (f, _) in shown])
            for file_name, outcome in shown:
                Formatter.terminal_output(
                    self.format_row(file_name, outcome, name_width),
                    sys.stdout
                )

        if len(disagreements) > len(shown):
            Formatter.terminal_output(
                " ... {n} more".format(n=len(disagreements) - len(shown)),
                sys.stdout
            )

    def show_summary(self, summary):
        if summary.all_matched:
            Formatter.terminal_output(
                self.green('done, all blames matched'), sys.stdout
            )
        else:
            Formatter.terminal_output(
                "done, number of matches: {m}, number of non-matches: {n}"
                .format(
                    m=summary.matched_files,
                    n=summary.total_files - summary.matched_files,
                ),
                sys.stdout
            )

        label_width = max(len(kind.label) for kind in OUTCOME_KINDS)
        for kind in OUTCOME_KINDS:
            Formatter.terminal_output(
                " {label} | {count}".format(
                    label=kind.label.ljust(label_width),
                    count=summary.count(kind),
                ),
                sys.stdout
            )

        percentage = summary.percentage
        if percentage is None:
            percentage = 'n/a'
        else:
            percentage = "{p:.2f}%".format(p=percentage)

        Formatter.terminal_output(
            "lines: {m} matching, {n} not matching ({pct})".format(
                m=summary.matching_lines,
                n=summary.mismatched_lines,
                pct=percentage,
            ),
            sys.stdout
        )


class BlameComparison(object):
    '''
    Runs both blame executables over the repository and compares the results
    '''

    def __init__(self):
        self.parser = setup_argparser()
        self.args = None
        self.runner = None
        self.formatter = None

        # Resolved once per run from the executables' names
        self.baseline_format = None
        self.comparison_format = None
        self.blame_args = list()

        # Relative paths of the text files to compare, in ls-files order
        self.files = list()

        # (file name, Outcome) pairs, in the same order as self.files
        self.results = list()
        self.summary = None

    def process_args(self, argv=None):
        self.args = self.parser.parse_args(argv)

        for option in ('skip', 'take', 'max_rows'):
            value = getattr(self.args, option)
            if value is not None and value < 0:
                raise ConfigurationError(
                    "--{opt} can't be negative".format(
                        opt=option.replace('_', '-'))
                )
        if self.args.jobs < 1:
            raise ConfigurationError("--jobs must be at least 1")
        if self.args.timeout is not None and self.args.timeout <= 0:
            raise ConfigurationError("--timeout must be positive")

        self.baseline_format = line_format_for(self.args.baseline_executable)
        self.comparison_format = line_format_for(
            self.args.comparison_executable
        )

        try:
            self.blame_args = shlex.split(self.args.args or '')
        except ValueError as ve:
            raise ConfigurationError(
                "Couldn't split --args: {ex}".format(ex=ve)
            )

        work_tree = os.path.abspath(self.args.git_work_tree)
        if not os.path.isdir(os.path.join(work_tree, '.git')):
            raise ConfigurationError(
                "{wt} is not the work tree of a Git repository".format(
                    wt=work_tree
                )
            )

        try:
            self.runner = GitRunner(work_tree)
        except GitError as ge:
            raise ConfigurationError(
                "Could not initialise GitRunner for {wt}:{newline}{ex}".format(
                    wt=work_tree,
                    newline=os.linesep,
                    ex=str(ge)
                )
            )

        self.formatter = Formatter(self.args.max_rows)

    def populate_files(self):
        '''
        Populates self.files with the window of text files selected by the
        --skip and --take CLI args
        '''

        text_files, _ = self.runner.get_tracked_files()

        skip = self.args.skip or 0
        take = self.args.take
        if take is None:
            take = len(text_files)

        Formatter.terminal_output(
            "{n} files to run blame for, skip {s}, take {t}".format(
                n=len(text_files), s=skip, t=take
            ),
            sys.stdout
        )
        self.files = text_files[skip:skip + take]

    def compare_file(self, file_name):
        '''
        Runs both executables on file_name and compares their output. Every
        per-file problem becomes an Outcome rather than an exception.
        '''

        try:
            baseline_output = self.runner.run_blame(
                self.args.baseline_executable,
                self.blame_args,
                file_name,
                timeout=self.args.timeout,
            )
            comparison_output = self.runner.run_blame(
                self.args.comparison_executable,
                self.blame_args,
                file_name,
                timeout=self.args.timeout,
            )
        except BlameExecutionError as bee:
            return ExecutionFailure(
                bee.executable,
                bee.returncode,
                Formatter.display_name(str(bee)),
            )

        return compare_blames(
            baseline_output,
            comparison_output,
            self.baseline_format,
            self.comparison_format,
        )

    def map_blames(self):
        '''
        Compares every file in self.files, --jobs at a time. Results are
        collected in the order of self.files whatever order they finish in.
        '''

        Formatter.terminal_output('comparing blames', sys.stdout)
        skip = self.args.skip or 0

        with futures.ThreadPoolExecutor(max_workers=self.args.jobs) \
                as executor:
            outcomes = executor.map(self.compare_file, self.files)

            for offset, (file_name, outcome) in \
                    enumerate(zip(self.files, outcomes)):
                self.results.append((file_name, outcome))
                if self.args.verbose:
                    self.formatter.show_file(skip + offset, file_name, outcome)
                else:
                    self.formatter.show_progress(outcome)

        if self.files and not self.args.verbose:
            Formatter.terminal_output('', sys.stdout)

    def reduce_outcomes(self):
        self.summary = CorpusSummary.from_results(self.results)

    def run(self, argv=None):
        try:
            self.process_args(argv)
            self.populate_files()
        except (ConfigurationError, GitError) as ex:
            Formatter.terminal_output(str(ex), sys.stderr)
            return 1
        else:
            self.map_blames()
            self.reduce_outcomes()

            self.formatter.show_disagreements(self.results)
            self.formatter.show_summary(self.summary)

            if self.args.strict and not self.summary.all_matched:
                return 1
            return 0


def setup_argparser():
    '''
    Returns an instance of argparse.ArgumentParser for git-blame-compare
    '''
    import argparse

    parser = argparse.ArgumentParser(
        prog='git-blame-compare',
        description='''
git-blame-compare runs two implementations of git-blame over every text file
in a repository and reports the files for which they disagree on which commit
last touched a line.
        '''.strip(),
        epilog='''
The baseline executable must be named git and the comparison executable gix.
        '''.strip()
    )
    parser.add_argument(
        '--git-work-tree',
        required=True,
        help='The work tree of the repository to run blame in',
    )
    parser.add_argument(
        '--baseline-executable',
        required=True,
        help='The reference blame implementation',
    )
    parser.add_argument(
        '--comparison-executable',
        required=True,
        help='The blame implementation under test',
    )
    parser.add_argument(
        '--args',
        help='Extra arguments passed to both executables after "blame"',
    )
    parser.add_argument(
        '--skip',
        type=int,
        default=0,
        help='Number of text files to skip before comparing',
    )
    parser.add_argument(
        '--take',
        type=int,
        help='Maximum number of text files to compare',
    )
    parser.add_argument(
        '-j', '--jobs',
        type=int,
        default=1,
        help='Number of files to compare concurrently',
    )
    parser.add_argument(
        '--timeout',
        type=float,
        help='Seconds to wait for a single blame before counting it as failed',
    )
    parser.add_argument(
        '--max-rows',
        type=int,
        default=256,
        help='Maximum number of disagreeing files to list',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Print every file name and its outcome as it is compared',
    )
    parser.add_argument(
        '--strict',
        action='store_true',
        help='Exit with a non-zero status if any file did not match',
    )
    return parser


def main():
    sys.exit(BlameComparison().run())


if '__main__' == __name__:
    main()
