import logging
import os.path
import pathlib
import re
import typing

import attr

from . import editor, manifest, paths
from .age import Age
from .config import IDENTITY_PATH, PROJECT_PATH, Config
from .manifest import ParsedManifest
from .nix import Nix, check_secret_path
from .state import State
from .utils import (
    InvalidGroupName,
    InvalidPath,
    IoFailure,
    NoIdentityConfigured,
    NoProjectOpen,
    read_text,
    write_text,
)

log = logging.getLogger(__name__)

MANIFEST_NAME = 'meta_secrets.nix'
SECRET_PATTERN = '**/*.age'
GROUP_NAME = re.compile(r'\w+')


def check_group_name(name: str) -> None:
    if not GROUP_NAME.fullmatch(name):
        raise InvalidGroupName(
            f"Invalid group name: {name!r}. "
            f"Only alphanumeric and underscore allowed.")


@attr.s(frozen=True, kw_only=True)
class SecretFile:
    path: str = attr.ib()
    groups: typing.Tuple[str, ...] = attr.ib(converter=tuple)

    def __str__(self):
        return self.path


@attr.s(frozen=True, kw_only=True)
class Project:
    path: pathlib.Path = attr.ib()
    secrets: typing.Tuple[SecretFile, ...] = attr.ib(converter=tuple)
    groups: typing.Tuple[str, ...] = attr.ib(converter=tuple)


def find_secret_files(directory: pathlib.Path) -> typing.List[str]:
    return sorted(
        pathlib.Path(os.path.relpath(path, directory)).as_posix()
        for path in directory.glob(SECRET_PATTERN)
        if path.is_file())


@attr.s(frozen=True)
class SecretKeeper:
    """
    Create, read, update and delete secrets in a project.

    The manifest file is the source of truth. The parsed copy held in state
    is only replaced once every step of an operation has succeeded.
    """

    age: Age = attr.ib(factory=Age)
    nix: Nix = attr.ib(factory=Nix)
    config: Config = attr.ib(factory=Config)
    state: State = attr.ib(factory=State)

    @property
    def project(self) -> pathlib.Path:
        project = self.state.project.get()
        if project is None:
            raise NoProjectOpen()
        return project

    @property
    def identity(self) -> pathlib.Path:
        identity = self.state.identity.get()
        if identity is None:
            raise NoIdentityConfigured()
        return identity

    @property
    def manifest(self) -> ParsedManifest:
        parsed = self.state.manifest.get()
        if parsed is None:
            raise NoProjectOpen()
        return parsed

    def open_project(self, directory: pathlib.Path) -> Project:
        manifest_path = directory / MANIFEST_NAME
        if not manifest_path.exists():
            raise IoFailure(f"No {MANIFEST_NAME} found in {directory}")

        log.info(f"Opening project {directory}")
        parsed = manifest.parse(read_text(manifest_path))

        self.state.project.set(directory)
        self.state.manifest.set(parsed)
        self.config.set(PROJECT_PATH, str(directory))

        return Project(
            path=directory,
            secrets=self.secret_files(),
            groups=parsed.group_names)

    def secret_files(self) -> typing.List[SecretFile]:
        """Pair each encrypted file in the project with its manifest groups."""
        project, parsed = self.project, self.manifest
        secrets = []
        for path in find_secret_files(project):
            entry = parsed.secret(path)
            secrets.append(SecretFile(
                path=path,
                groups=entry.groups if entry else ()))
        log.info(f"Found {len(secrets)} encrypted files in {project}")
        return secrets

    def close_project(self) -> None:
        log.info("Closing project")
        self.state.project.set(None)
        self.state.manifest.set(None)

    def saved_project(self) -> typing.Optional[pathlib.Path]:
        saved = self.config.get(PROJECT_PATH)
        if saved and pathlib.Path(saved).exists():
            return pathlib.Path(saved)
        return None

    def set_identity(self, path: pathlib.Path) -> None:
        if not path.exists():
            raise InvalidPath(f"Identity file not found: {path}")
        self.state.identity.set(path)
        self.config.set(IDENTITY_PATH, str(path))

    def saved_identity(self) -> typing.Optional[pathlib.Path]:
        identity = self.state.identity.get()
        if identity is not None:
            return identity

        saved = self.config.get(IDENTITY_PATH)
        if saved and pathlib.Path(saved).exists():
            self.state.identity.set(pathlib.Path(saved))
            return pathlib.Path(saved)
        return None

    def decrypt(self, path: str) -> str:
        project = self.project
        identity = self.identity
        return self.age.decrypt(paths.resolve(project, path), identity)

    def save(self, path: str, content: str) -> None:
        """Re-encrypt an existing secret for its current recipients."""
        project = self.project
        target = paths.resolve(project, path)
        recipients = self.nix.recipients(project, path)
        log.info(f"Encrypting {path} for {len(recipients)} recipients")
        self.age.encrypt_text(target, content, recipients)

    def create(
            self,
            path: str,
            content: str,
            groups: typing.Sequence[str]) -> None:
        """
        Add a secret to the manifest and encrypt it for the given groups.

        The manifest entry is written before recipients are resolved, as
        secrets.nix reads the manifest to find them. If resolving or
        encrypting fails the manifest is restored to its previous content.
        """
        for group in groups:
            check_group_name(group)

        project = self.project
        check_secret_path(path)
        target = paths.resolve(project, path)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise IoFailure(f"Failed to create directories: {error}") from error

        manifest_path = project / MANIFEST_NAME
        original = read_text(manifest_path)
        updated = editor.add_entry(original, path, groups)

        try:
            write_text(manifest_path, updated)
            recipients = self.nix.recipients(project, path)
            log.info(f"Encrypting {path} for {len(recipients)} recipients")
            self.age.encrypt_text(target, content, recipients)
        except Exception:
            self.rollback(manifest_path, original)
            raise

        self.state.manifest.set(manifest.parse(updated))
        log.info(f"Created {path}")

    def delete(self, path: str) -> None:
        """Delete an encrypted file and its manifest entry."""
        project = self.project
        paths.resolve(project, path)

        # A symlinked secret is removed itself, not the file it points to.
        target = project / path
        if target.exists() or target.is_symlink():
            log.info(f"Deleting {target}")
            try:
                target.unlink()
            except OSError as error:
                raise IoFailure(f"Failed to delete file: {error}") from error

        manifest_path = project / MANIFEST_NAME
        updated = editor.remove_entry(read_text(manifest_path), path)
        write_text(manifest_path, updated)

        self.state.manifest.set(manifest.parse(updated))
        log.info(f"Deleted {path}")

    @staticmethod
    def rollback(manifest_path: pathlib.Path, original: str) -> None:
        log.warning(f"Restoring {manifest_path.name} after a failed change")
        try:
            write_text(manifest_path, original)
        except IoFailure as error:
            log.error(f"Failed to restore {manifest_path.name}: {error.message}")
