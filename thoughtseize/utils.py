import logging
import pathlib
import shutil
import typing

import click
import git

log = logging.getLogger(__name__)


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except git.exc.InvalidGitRepositoryError:
        return None
    return pathlib.Path(repo.working_dir)


def in_directory(
        path: pathlib.Path,
        directory: pathlib.Path) -> bool:
    """Check if a path is the directory or a subpath of it."""
    try:
        path.relative_to(directory)
    except ValueError:
        return False
    else:
        return True


def read_text(path: pathlib.Path) -> str:
    log.debug(f"Reading {path}")
    try:
        with path.open('r', encoding='utf-8', newline='') as f:
            return f.read()
    except OSError as error:
        raise IoFailure(f"Failed to read {path.name}: {error}") from error


def temporary_path(path: pathlib.Path) -> pathlib.Path:
    return path.with_name(f'.{path.name}.tmp')


def write_text(path: pathlib.Path, text: str) -> None:
    """Replace a file's contents, leaving it untouched if the write fails."""
    log.debug(f"Writing {path}")
    output = temporary_path(path)
    try:
        with output.open('w', encoding='utf-8', newline='') as f:
            f.write(text)
        if path.exists():
            shutil.copymode(path, output)
        output.replace(path)
    except OSError as error:
        raise IoFailure(f"Failed to write {path.name}: {error}") from error
    finally:
        if output.exists():
            output.unlink()


class ThoughtseizeException(click.ClickException):
    pass


class MalformedManifest(ThoughtseizeException):
    pass


class PathTraversal(ThoughtseizeException):
    pass


class InvalidPath(ThoughtseizeException):
    pass


class InvalidGroupName(ThoughtseizeException):
    pass


class NoProjectOpen(ThoughtseizeException):
    def __init__(self, message: str = "No project open"):
        super().__init__(message)


class NoIdentityConfigured(ThoughtseizeException):
    def __init__(
            self,
            message: str = "No identity configured - "
                           "select one with 'thoughtseize identity PATH'"):
        super().__init__(message)


class ExternalToolFailure(ThoughtseizeException):
    def __init__(
            self,
            tool: str,
            diagnostic: str,
            message: typing.Optional[str] = None):
        self.tool = tool
        self.diagnostic = diagnostic
        super().__init__(message or f"{tool} failed: {diagnostic.strip()}")


class EvaluationParseFailure(ThoughtseizeException):
    pass


class IoFailure(ThoughtseizeException):
    pass
