import click.testing
import pytest

import thoughtseize.cli
from thoughtseize import __version__
from thoughtseize.secrets import MANIFEST_NAME

from .conftest import KEYS


def test_version(invoke):
    assert invoke(['version']) == [f'thoughtseize {__version__}']


def test_ls(invoke):
    assert invoke(['ls']) == [
        'bigquery/sa-data-scripts.json.age -> tech',
        'watch/GEMINI_API_KEY.age -> tech ++ ciRunner ++ identity',
    ]


def test_ls_reports_missing_files(invoke, project):
    (project / 'bigquery/sa-data-scripts.json.age').unlink()
    assert invoke(['ls'])[-1] == (
        f'bigquery/sa-data-scripts.json.age is in {MANIFEST_NAME} but does not exist')


def test_groups(invoke):
    assert invoke(['groups']) == [
        'tech = meta.ssh.groups.TECH',
        'ciRunner = meta.ssh.nodes.ci-runner',
        'identity = [ "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAINu6Q identity" ]',
    ]


def test_cat(invoke, identity_file):
    assert invoke(['-i', str(identity_file), 'cat', 'watch/GEMINI_API_KEY.age']) == ['gemini-key']


def test_create_from_file(invoke, project, tmp_path):
    plaintext = tmp_path / 'token.txt'
    plaintext.write_text('token\n')

    output = invoke(['create', 'api/token.age', str(plaintext), '-g', 'tech'])

    assert output == ['Created api/token.age for tech']
    assert '"api/token.age".publicKeys = tech;' in (project / MANIFEST_NAME).read_text()
    assert (project / 'api/token.age').read_text() == ','.join(KEYS['tech']) + '\ntoken\n'


def test_rm(invoke, project):
    assert invoke(['rm', '--yes', 'bigquery/sa-data-scripts.json.age']) == [
        'Deleted bigquery/sa-data-scripts.json.age']
    assert not (project / 'bigquery/sa-data-scripts.json.age').exists()
    assert 'sa-data-scripts' not in (project / MANIFEST_NAME).read_text()


def test_rm_confirm(invoke, project):
    invoke(['rm', 'bigquery/sa-data-scripts.json.age'], input='y\n')
    assert not (project / 'bigquery/sa-data-scripts.json.age').exists()


def test_identity(invoke, identity_file, keeper):
    assert invoke(['identity', str(identity_file)]) == [f'Selected identity {identity_file}']
    assert keeper.config.get('identity_path') == str(identity_file)
    assert invoke(['identity']) == [str(identity_file)]


def test_identities(invoke, monkeypatch, tmp_path):
    (tmp_path / '.ssh').mkdir()
    (tmp_path / '.ssh/id_rsa').write_text('key')
    monkeypatch.setenv('HOME', str(tmp_path))
    assert invoke(['identities']) == [f'  {tmp_path / ".ssh/id_rsa"} (ssh-rsa)']


@pytest.mark.parametrize('arguments', [
    ['cat', 'watch/GEMINI_API_KEY.age'],
    ['create', 'x.age', '-g', 'has-dash'],
    ['rm', '--yes', '../../etc/passwd'],
])
def test_errors_are_reported(keeper, project, arguments):
    result = click.testing.CliRunner().invoke(
        thoughtseize.cli.main, ['-p', str(project), *arguments], obj=keeper)
    assert result.exit_code == 1
    assert 'Error: ' in result.output
