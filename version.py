# -*- coding: utf-8 -*-
# Author: Douglas Creager <dcreager@dcreager.net>
# This file is placed into the public domain.

# Calculates the current version number.  If possible, this is the
# output of “git describe”, modified to conform to the versioning
# scheme that setuptools uses.  If “git describe” returns an error
# (most likely because we're in an unpacked copy of a release tarball,
# rather than in a git working copy), then we fall back on reading the
# contents of the RELEASE-VERSION file.
#
# The RELEASE-VERSION file is updated whenever “git describe” gives a
# different answer, and is distributed in sdist tarballs through
# MANIFEST.in.

__all__ = ("get_git_version",)

from blame_compare.compare import GitRunner
import os
import re


def call_git_describe(abbrev=4):
    runner = GitRunner()
    output = runner.run_git(['rev-parse', '--abbrev-ref', 'HEAD'])
    branch = output[0].strip()

    output = runner.run_git(['describe', '--long', '--abbrev=%d' % abbrev])
    tag = output[0].strip()
    release, commits_ahead, _ = tag.rsplit('-', 2)
    if not re.match(r"^\d+(\.\d+)*$", release):
        # Not a tag we can turn into a setuptools version
        return None
    commits_ahead = int(commits_ahead)
    if commits_ahead:
        if 'master' == branch:
            return "{t}.post{c}".format(t=release, c=commits_ahead)
        else:
            return "{t}.dev{c}".format(t=release, c=commits_ahead)
    else:
        return release


def get_release_version_path():
    top_level_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(top_level_dir, 'RELEASE-VERSION')


def read_release_version():
    try:
        with open(get_release_version_path(), "r") as f:
            return f.readlines()[0].strip()
    except (IOError, IndexError):
        return None


def write_release_version(version):
    with open(get_release_version_path(), "w") as f:
        f.write("%s\n" % version)


def get_git_version(abbrev=4):
    # Read in the version that's currently in RELEASE-VERSION.
    release_version = read_release_version()

    # First try to get the current version using “git describe”. Any failure
    # means we're probably operating from a source dist.
    try:
        version = call_git_describe(abbrev)
    except Exception:
        version = None

    # If that doesn't work, fall back on the value that's in
    # RELEASE-VERSION.
    if version is None:
        version = release_version

    # If we still don't have anything, that's an error.
    if version is None:
        raise ValueError("Cannot find the version number!")

    # If the current version is different from what's in the
    # RELEASE-VERSION file, update the file to be current.
    if version != release_version:
        write_release_version(version)

    return version


if __name__ == "__main__":
    print(get_git_version())
