import logging
import pathlib
import typing

import attr

log = logging.getLogger(__name__)

CANDIDATES: typing.Sequence[typing.Tuple[str, str]] = (
    ('.ssh/id_ed25519', 'ssh-ed25519'),
    ('.ssh/id_rsa', 'ssh-rsa'),
    ('.config/age/keys.txt', 'age'),
)


@attr.s(frozen=True, kw_only=True)
class Identity:
    path: pathlib.Path = attr.ib()
    key_type: str = attr.ib()

    def __str__(self):
        return str(self.path)


def list_identities(
        home: typing.Optional[pathlib.Path] = None) -> typing.List[Identity]:
    """Find the SSH and age identities in the usual places."""
    home = home or pathlib.Path.home()
    identities = [
        Identity(path=home / name, key_type=key_type)
        for name, key_type in CANDIDATES
        if (home / name).exists()]
    log.debug(f"Found {len(identities)} identities in {home}")
    return identities
