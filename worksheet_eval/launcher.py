"""
Classpath launcher for compiled Python worksheets.

Runs in the child process as a plain script:

    python launcher.py -cp DIR[:DIR...] package.Module

The entry point is looked up the way a JVM looks up a class: the first
classpath entry holding ``package/Module.pyc`` (or ``.py``) wins, whatever
packages of the same name exist elsewhere, and that file runs as
``__main__``. The classpath entries also take the place of the launcher's
own directory at the front of ``sys.path``. Only the standard library is
imported here, since this package may not be importable in the child.
"""

import argparse
import os
import runpy
import sys

ENTRY_SUFFIXES = (".pyc", ".py")


def find_entry_point(entries: list[str], entry_point: str) -> str | None:
    """Return the file for a dotted entry point in the first entry that has one."""
    parts = entry_point.split(".")
    for entry in entries:
        base = os.path.join(entry, *parts)
        for suffix in ENTRY_SUFFIXES:
            if os.path.isfile(base + suffix):
                return base + suffix
    return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="worksheet-launcher", allow_abbrev=False)
    parser.add_argument("-cp", "-classpath", dest="classpath", default="")
    parser.add_argument("entry_point")
    args = parser.parse_args(argv)

    entries = [entry for entry in args.classpath.split(os.pathsep) if entry]
    path = find_entry_point(entries, args.entry_point)
    if path is None:
        print(f"Error: Could not find or load main module {args.entry_point}", file=sys.stderr)
        return 1

    sys.path[0:1] = entries
    sys.argv = [args.entry_point]

    runpy.run_path(path, run_name="__main__")
    return 0


if __name__ == "__main__":
    sys.exit(main())
