"""
Add and remove secret entries in manifest text.

Edits are made directly to the text so that everything other than the
targeted entry keeps its exact bytes: comments, formatting and the order of
the other entries are never touched.
"""

import logging
import typing

from .manifest import CONCATENATION, TERMINATOR
from .utils import MalformedManifest

log = logging.getLogger(__name__)

INDENT = '  '


def is_comment(line: str) -> bool:
    return line.lstrip().startswith('#')


def entry_line(path: str, groups: typing.Sequence[str]) -> str:
    expression = f' {CONCATENATION} '.join(groups)
    return f'{INDENT}"{path}".publicKeys = {expression}{TERMINATOR}'


def add_entry(text: str, path: str, groups: typing.Sequence[str]) -> str:
    """Insert a new entry just before the closing brace of the body."""
    close = text.rfind('}')
    if close == -1:
        raise MalformedManifest("No closing '}' found in manifest")

    eol = '\r\n' if '\r\n' in text else '\n'
    head, tail = text[:close], text[close:]
    before, newline, last = head.rpartition('\n')

    # Keep the closing brace's indentation on the line after the new entry.
    if newline and not last.strip():
        head, indent = f'{before}\n', last
    else:
        head, indent = f'{head}{eol}', ''

    log.debug(f"Adding manifest entry for {path}")
    return f'{head}{entry_line(path, groups)}{eol}{indent}{tail}'


def remove_entry(text: str, path: str) -> str:
    """
    Remove the entry for a path, including any continuation lines.

    Removal starts at the first line mentioning the quoted path and ends with
    the first line ending in ';'. Comment lines are always kept.
    """
    search = f'"{path}"'
    kept: typing.List[str] = []
    removing = False

    for line in text.splitlines(keepends=True):
        if is_comment(line):
            kept.append(line)
            continue

        if not removing and search in line:
            log.debug(f"Removing manifest entry for {path}")
            removing = True

        if removing:
            if line.rstrip().endswith(TERMINATOR):
                removing = False
            continue

        kept.append(line)

    return ''.join(kept)
