import functools
import glob
import logging
import pathlib
import shutil
import subprocess
import typing

import attr

from .utils import ExternalToolFailure, temporary_path

log = logging.getLogger(__name__)

NIX_STORE_PATTERN = '/nix/store/*/bin/age'


@functools.lru_cache()
def find_age_binary() -> str:
    """Find the age binary on $PATH, falling back to the nix store."""
    path = shutil.which('age')
    if path:
        return path

    for candidate in sorted(glob.glob(NIX_STORE_PATTERN)):
        if pathlib.Path(candidate).exists():
            return candidate

    raise ExternalToolFailure(
        'age', '',
        "'age' binary not found. Install it with: nix-env -iA nixpkgs.age")


@attr.s(frozen=True)
class Age:
    binary: typing.Optional[str] = attr.ib(default=None)
    timeout: typing.Optional[float] = attr.ib(default=None)

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        return (self.binary or find_age_binary(), *arguments)

    def run(self,
            arguments: typing.Sequence[str],
            stdin: typing.Optional[str] = None) -> subprocess.CompletedProcess:
        command = self.command(arguments)
        log.debug(f"Running {' '.join(command)}")
        try:
            return subprocess.run(
                command,
                encoding='utf-8',
                errors='replace',
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
                check=True)
        except subprocess.CalledProcessError as error:
            for line in error.stderr.splitlines():
                log.error(line)
            raise ExternalToolFailure('age', error.stderr) from error
        except subprocess.TimeoutExpired as error:
            raise ExternalToolFailure(
                'age', f"timed out after {self.timeout} seconds") from error
        except OSError as error:
            raise ExternalToolFailure(
                'age', str(error), f"Failed to run age: {error}") from error

    def decrypt(self, path: pathlib.Path, identity: pathlib.Path) -> str:
        """Decrypt a file with an identity, returning the plaintext."""
        log.debug(f"Decrypting {path} with {identity}")
        return self.run(['-d', '-i', str(identity), str(path)]).stdout

    def encrypt_text(
            self,
            path: pathlib.Path,
            text: str,
            recipients: typing.Iterable[str]) -> None:
        """
        Encrypt text for the recipients.

        The ciphertext is written next to the target and only moved into place
        once age has succeeded, so a failure leaves any existing file as it was.
        """
        log.debug(f"Encrypting {path}")
        args: typing.List[str] = ['-e']
        for recipient in recipients:
            args += ['-r', recipient]

        output = temporary_path(path)
        args += ['-o', str(output)]

        try:
            self.run(args, stdin=text)
            output.replace(path)
        except OSError as error:
            raise ExternalToolFailure(
                'age', str(error),
                f"Failed to move encrypted output to {path}: {error}") from error
        finally:
            if output.exists():
                output.unlink()
