import functools
import logging
import pathlib
import typing

import click
import click._termui_impl

from . import __doc__, __version__
from .age import Age
from .identities import list_identities
from .nix import Nix
from .secrets import MANIFEST_NAME, SecretKeeper, check_group_name
from .utils import ThoughtseizeException, find_git_directory

log = logging.getLogger(__name__)

PROJECT_KEY = 'thoughtseize.project'


def enc(path: str) -> str:
    """Style a path to an encrypted file."""
    return click.style(path, fg='green')


def grp(groups: typing.Iterable[str]) -> str:
    """Style a list of group names."""
    return click.style(' ++ '.join(groups) or '(no manifest entry)', fg='cyan')


def plaintext_suffix(path: str) -> str:
    """The extension an editor should see, 'x.json.age' is edited as '.json'."""
    suffixes = pathlib.PurePosixPath(path).suffixes
    return suffixes[-2] if len(suffixes) >= 2 else '.txt'


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


def default_project(sk: SecretKeeper) -> typing.Optional[pathlib.Path]:
    """Use the current git repository if it has a manifest, else the last project."""
    directory = find_git_directory()
    if directory is not None and (directory / MANIFEST_NAME).exists():
        return directory
    return sk.saved_project()


def pass_project(f):
    """Open the selected project before running a command."""
    @click.pass_context
    @functools.wraps(f)
    def wrapper(ctx, *args, **kwargs):
        sk: SecretKeeper = ctx.obj
        directory = ctx.meta.get(PROJECT_KEY) or default_project(sk)
        if directory is None:
            raise ThoughtseizeException(
                f"No project found - pass --project or run inside a "
                f"git repository containing {MANIFEST_NAME}")
        sk.open_project(directory)
        return f(sk, *args, **kwargs)
    return wrapper


secret_argument = click.argument(
    'path',
    type=click.STRING,
    required=True)


@click.group(help=__doc__)
@click.option(
    '-p', '--project', 'project',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=None,
    help="Defaults to the current git repository, then the last project opened.")
@click.option(
    '-i', '--identity', 'identity',
    type=PathType(
        file_okay=True,
        dir_okay=False,
        exists=True),
    envvar='THOUGHTSEIZE_IDENTITY',
    default=None,
    help="Identity file used to decrypt, defaults to the selected identity.")
@click.option(
    '-t', '--timeout', 'timeout',
    type=click.FLOAT,
    default=None,
    help="Seconds to wait for age and nix before giving up.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.pass_context
def main(
        ctx,
        project: typing.Optional[pathlib.Path],
        identity: typing.Optional[pathlib.Path],
        timeout: typing.Optional[float],
        debug: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    if ctx.obj is None:
        ctx.obj = SecretKeeper(age=Age(timeout=timeout), nix=Nix(timeout=timeout))

    ctx.meta[PROJECT_KEY] = project

    if identity is not None:
        ctx.obj.state.identity.set(identity)
    else:
        ctx.obj.saved_identity()


@main.command()
def version():
    """Show the application version."""
    click.echo(f"thoughtseize {__version__}")


@main.command()
@pass_project
def ls(sk: SecretKeeper):
    """List encrypted files with the groups they are encrypted for."""
    files = set()
    for secret in sk.secret_files():
        files.add(secret.path)
        click.echo(f"{enc(secret.path)} -> {grp(secret.groups)}")

    for entry in sk.manifest.secrets:
        if entry.path not in files:
            click.secho(f"{entry.path} is in {MANIFEST_NAME} but does not exist",
                        fg='yellow')


@main.command()
@pass_project
def groups(sk: SecretKeeper):
    """List the groups defined in the manifest."""
    for group in sk.manifest.groups:
        definition = ' '.join(group.definition.split())
        click.echo(f"{click.style(group.name, fg='cyan')} = {definition}")


@main.command()
@click.argument(
    'secrets',
    type=click.STRING,
    required=True,
    nargs=-1)
@pass_project
def cat(sk: SecretKeeper, secrets: typing.Sequence[str]):
    """Print the contents of encrypted files."""
    for path in secrets:
        click.echo(sk.decrypt(path), nl=False)


@main.command()
@secret_argument
@pass_project
def view(sk: SecretKeeper, path: str):
    """View the decrypted text of an encrypted file in your $PAGER."""
    contents = sk.decrypt(path)

    # Use the `click._termui_impl.pager()` method directly because
    # `click.echo_via_pager` appends a newline.
    click._termui_impl.pager(contents)  # type: ignore


@main.command()
@secret_argument
@pass_project
def edit(sk: SecretKeeper, path: str):
    """
    Edit an encrypted file without creating decrypted plaintext.

    The new contents are encrypted for the recipients secrets.nix resolves
    for the file.
    """
    old_text = sk.decrypt(path)
    new_text = click.edit(text=old_text, extension=plaintext_suffix(path))

    if not new_text:
        raise click.ClickException("File is empty")

    if new_text == old_text:
        raise click.ClickException("No changes were made to the file")

    sk.save(path, new_text)
    click.echo(f"Encrypted {enc(path)}")


@main.command()
@secret_argument
@click.argument(
    'plaintext', type=PathType(exists=True, dir_okay=False), default=None, required=False)
@click.option(
    '-g', '--group', 'groups',
    metavar='NAME',
    multiple=True,
    required=True,
    type=click.STRING,
    help="Group from the manifest allowed to decrypt the secret.")
@pass_project
def create(
        sk: SecretKeeper,
        path: str,
        plaintext: typing.Optional[pathlib.Path],
        groups: typing.Sequence[str]):
    """
    Create a new encrypted secret and add it to the manifest.

    The contents are read from PLAINTEXT, or from your $EDITOR if no file is
    given.
    """
    for group in groups:
        check_group_name(group)

    if plaintext:
        text = plaintext.read_text()
    else:
        text = click.edit(extension=plaintext_suffix(path))

    if not text:
        raise click.ClickException("New file is empty")

    sk.create(path, text, groups)
    click.echo(f"Created {enc(path)} for {grp(groups)}")


@main.command()
@secret_argument
@click.option(
    '-y', '--yes', 'yes',
    default=False,
    is_flag=True,
    help="Don't ask for confirmation.")
@pass_project
def rm(sk: SecretKeeper, path: str, yes: bool):
    """Delete an encrypted file and remove it from the manifest."""
    if not yes:
        click.confirm(f"Delete {path}?", abort=True)

    sk.delete(path)
    click.echo(f"Deleted {enc(path)}")


@main.command()
@click.pass_obj
def identities(sk: SecretKeeper):
    """List identities found in ~/.ssh and ~/.config/age."""
    selected = sk.state.identity.get()
    for identity in list_identities():
        marker = '*' if identity.path == selected else ' '
        click.echo(f"{marker} {identity} ({identity.key_type})")


@main.command()
@click.argument(
    'path',
    type=PathType(exists=True, dir_okay=False),
    required=False)
@click.pass_obj
def identity(sk: SecretKeeper, path: typing.Optional[pathlib.Path]):
    """Show or select the identity used to decrypt secrets."""
    if path is not None:
        sk.set_identity(path)
        click.echo(f"Selected identity {path}")
    else:
        click.echo(str(sk.identity))
