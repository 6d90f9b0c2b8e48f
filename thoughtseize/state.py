import pathlib
import threading
import typing

import attr

from .manifest import ParsedManifest

T = typing.TypeVar('T')


@attr.s
class Cell(typing.Generic[T]):
    """A value guarded by its own lock, held only to read or replace it."""

    _value: typing.Optional[T] = attr.ib(default=None)
    _lock: threading.Lock = attr.ib(factory=threading.Lock, repr=False, eq=False)

    def get(self) -> typing.Optional[T]:
        with self._lock:
            return self._value

    def set(self, value: typing.Optional[T]) -> None:
        with self._lock:
            self._value = value


@attr.s(frozen=True)
class State:
    project: Cell[pathlib.Path] = attr.ib(factory=Cell)
    identity: Cell[pathlib.Path] = attr.ib(factory=Cell)
    manifest: Cell[ParsedManifest] = attr.ib(factory=Cell)
