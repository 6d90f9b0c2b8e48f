"""
Resolve the public keys a secret is encrypted for by evaluating secrets.nix.

secrets.nix imports the manifest and expands every group reference, so the
recipients of a secret are whatever `nix eval` reports for its publicKeys.
"""

import json
import logging
import pathlib
import re
import subprocess
import typing

import attr

from .utils import EvaluationParseFailure, ExternalToolFailure, InvalidPath, IoFailure

log = logging.getLogger(__name__)

RECIPIENTS_NAME = 'secrets.nix'
SAFE_SECRET_PATH = re.compile(r'[A-Za-z0-9._/-]+')


def check_secret_path(path: str) -> None:
    """Only allow characters that can't break out of a quoted Nix attribute."""
    if not SAFE_SECRET_PATH.fullmatch(path):
        raise InvalidPath(f"Invalid characters in secret path: {path!r}")


def expression(path: str) -> str:
    return f'(import ./{RECIPIENTS_NAME})."{path}".publicKeys'


@attr.s(frozen=True)
class Nix:
    binary: str = attr.ib(default='nix')
    timeout: typing.Optional[float] = attr.ib(default=None)

    def command(self, path: str) -> typing.Tuple[str, ...]:
        return (self.binary, 'eval', '--impure', '--json', '--expr', expression(path))

    def run(self, project: pathlib.Path, path: str) -> str:
        try:
            return subprocess.run(
                self.command(path),
                cwd=project,
                encoding='utf-8',
                errors='replace',
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
                check=True).stdout
        except subprocess.CalledProcessError as error:
            for line in error.stderr.splitlines():
                log.error(line)
            raise ExternalToolFailure(
                'nix eval', error.stderr,
                f"nix eval failed: {error.stderr.strip()}") from error
        except subprocess.TimeoutExpired as error:
            raise ExternalToolFailure(
                'nix eval', f"timed out after {self.timeout} seconds") from error
        except OSError as error:
            raise ExternalToolFailure(
                'nix eval', str(error), f"Failed to run nix eval: {error}") from error

    def recipients(self, project: pathlib.Path, path: str) -> typing.List[str]:
        """Evaluate the recipient public keys for a secret path."""
        check_secret_path(path)

        if not (project / RECIPIENTS_NAME).exists():
            raise IoFailure(f"{RECIPIENTS_NAME} not found in {project}")

        log.debug(f"Resolving recipients for {path}")
        output = self.run(project, path)

        try:
            keys = json.loads(output)
        except ValueError as error:
            raise EvaluationParseFailure(
                f"Failed to parse nix eval output: {error}") from error

        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            raise EvaluationParseFailure(
                f"Expected a list of public keys for {path}, got {output.strip()}")

        log.info(f"Resolved {len(keys)} recipients for {path}")
        return keys
