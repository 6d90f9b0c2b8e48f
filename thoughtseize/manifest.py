"""
Read the groups and secrets declared in a meta_secrets.nix manifest.

This is not a Nix parser. It understands the narrow shape these manifests are
written in::

    { meta }:
    let
      tech = meta.ssh.groups.TECH;
      ciRunner = meta.ssh.nodes.ci-runner;
    in
    {
      "watch/GEMINI_API_KEY.age".publicKeys =
        tech ++ ciRunner;
      "bigquery/sa.json.age".publicKeys = tech;
    }

Extraction is best-effort: a group definition that never reaches its ';' and
a body statement that isn't a '"path".publicKeys = expr;' binding are both
skipped rather than failing the whole manifest.
"""

import logging
import re
import typing

import attr

from .utils import MalformedManifest

log = logging.getLogger(__name__)

TERMINATOR = ';'
CONCATENATION = '++'
PUBLIC_KEYS = '".publicKeys'

PRELUDE_OPEN = re.compile(r'^let(?=\s|$)', re.MULTILINE)
PRELUDE_CLOSE = re.compile(r'^in(?=[\s{]|$)', re.MULTILINE)
DEFINITION = re.compile(r"^\s*([A-Za-z_][\w'-]*)\s*=(?!=)\s*(.*)$")


@attr.s(frozen=True, kw_only=True)
class GroupDefinition:
    name: str = attr.ib()
    definition: str = attr.ib()


@attr.s(frozen=True, kw_only=True)
class SecretEntry:
    path: str = attr.ib()
    groups: typing.Tuple[str, ...] = attr.ib(converter=tuple)
    raw_expression: str = attr.ib()


@attr.s(frozen=True, kw_only=True)
class ParsedManifest:
    groups: typing.Tuple[GroupDefinition, ...] = attr.ib(converter=tuple, factory=tuple)
    secrets: typing.Tuple[SecretEntry, ...] = attr.ib(converter=tuple, factory=tuple)

    @property
    def group_names(self) -> typing.Tuple[str, ...]:
        return tuple(group.name for group in self.groups)

    def group(self, name: str) -> typing.Optional[GroupDefinition]:
        """Find a group by name, the first definition wins."""
        return next((g for g in self.groups if g.name == name), None)

    def secret(self, path: str) -> typing.Optional[SecretEntry]:
        """Find a secret by path, the last entry wins."""
        return next((s for s in reversed(self.secrets) if s.path == path), None)


def split_groups(expression: str) -> typing.Tuple[str, ...]:
    fragments = (f.strip() for f in expression.split(CONCATENATION))
    return tuple(f for f in fragments if f)


def parse_groups(prelude: str) -> typing.List[GroupDefinition]:
    groups: typing.List[GroupDefinition] = []
    lines = prelude.splitlines()
    i = 0

    while i < len(lines):
        match = DEFINITION.match(lines[i])
        i += 1
        if not match or lines[i - 1].lstrip().startswith('#'):
            continue

        name, definition = match.groups()
        while not definition.rstrip().endswith(TERMINATOR) and i < len(lines):
            definition = f'{definition}\n{lines[i]}'
            i += 1

        if not definition.rstrip().endswith(TERMINATOR):
            log.debug(f"Skipping unterminated definition of group {name}")
            continue

        definition = definition.rstrip()[:-len(TERMINATOR)].strip()
        groups.append(GroupDefinition(name=name, definition=definition))

    return groups


def parse_entry(line: str) -> typing.Optional[SecretEntry]:
    """Parse a complete '"path".publicKeys = expr;' statement."""
    marker = line.find(PUBLIC_KEYS)
    quote = line.find('"')
    if marker == -1 or quote == -1 or quote >= marker:
        return None

    equals = line.find('=', marker)
    if equals == -1:
        return None

    expression = line[equals + 1:-len(TERMINATOR)].strip()
    return SecretEntry(
        path=line[quote + 1:marker],
        groups=split_groups(expression),
        raw_expression=expression)


def parse_secrets(body: str) -> typing.List[SecretEntry]:
    secrets: typing.List[SecretEntry] = []
    current = ''

    for line in body.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue

        current = f'{current} {stripped}' if current else stripped

        if current.endswith(TERMINATOR):
            entry = parse_entry(current)
            if entry is None:
                log.debug(f"Skipping unrecognised statement {current!r}")
            else:
                secrets.append(entry)
            current = ''

    return secrets


def parse(text: str) -> ParsedManifest:
    opening = PRELUDE_OPEN.search(text)
    if opening is None:
        raise MalformedManifest("No 'let' block found in manifest")

    closing = PRELUDE_CLOSE.search(text, opening.end())
    if closing is None:
        raise MalformedManifest("No 'in' found after the 'let' block in manifest")

    body_start = text.find('{', closing.end())
    if body_start == -1:
        raise MalformedManifest("No '{' found after 'in' in manifest")

    body_end = text.rfind('}')
    if body_end < body_start:
        raise MalformedManifest("No closing '}' found in manifest")

    manifest = ParsedManifest(
        groups=parse_groups(text[opening.end():closing.start()]),
        secrets=parse_secrets(text[body_start + 1:body_end]))

    log.debug(f"Parsed {len(manifest.groups)} groups "
              f"and {len(manifest.secrets)} secrets")
    return manifest
