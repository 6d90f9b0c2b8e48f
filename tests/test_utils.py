import pathlib
import stat

import pytest

from thoughtseize.utils import IoFailure, read_text, temporary_path, write_text


def test_write_text(tmp_path):
    path = tmp_path / 'meta_secrets.nix'
    write_text(path, 'let\r\nin\r\n{\r\n}\r\n')
    assert path.read_bytes() == b'let\r\nin\r\n{\r\n}\r\n'
    assert read_text(path) == 'let\r\nin\r\n{\r\n}\r\n'
    assert not temporary_path(path).exists()


def test_write_text_keeps_mode(tmp_path):
    path = tmp_path / 'meta_secrets.nix'
    path.write_text('original')
    path.chmod(0o600)
    write_text(path, 'updated')
    assert path.read_text() == 'updated'
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_write_text_failure_keeps_file(tmp_path, monkeypatch):
    path = tmp_path / 'meta_secrets.nix'
    path.write_text('original')

    def replace(self, target):
        raise OSError(28, 'No space left on device')

    monkeypatch.setattr(pathlib.Path, 'replace', replace)
    with pytest.raises(IoFailure):
        write_text(path, 'updated')

    assert path.read_text() == 'original'
    assert not temporary_path(path).exists()


def test_read_missing_file(tmp_path):
    with pytest.raises(IoFailure):
        read_text(tmp_path / 'missing')
