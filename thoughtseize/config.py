"""
Remember the last opened project and selected identity between runs.
"""

import json
import logging
import pathlib
import typing

import attr
import click

log = logging.getLogger(__name__)

APP_NAME = 'thoughtseize'

PROJECT_PATH = 'project_path'
IDENTITY_PATH = 'identity_path'


def default_config_path() -> pathlib.Path:
    return pathlib.Path(click.get_app_dir(APP_NAME)) / 'config.json'


@attr.s(frozen=True)
class Config:
    path: pathlib.Path = attr.ib(factory=default_config_path)

    def load(self) -> typing.Dict[str, typing.Any]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as error:
            log.warning(f"Ignoring unreadable config file {self.path}: {error}")
            return {}

        if not isinstance(data, dict):
            log.warning(f"Ignoring config file {self.path} as it is not an object")
            return {}

        return data

    def get(self, key: str) -> typing.Optional[str]:
        value = self.load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self.load()
        data[key] = value
        log.debug(f"Saving {key} to {self.path}")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding='utf-8')
        except OSError as error:
            log.warning(f"Failed to save {key} to {self.path}: {error}")
