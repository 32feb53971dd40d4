import os
import shutil

import git
import pytest

from eenv.hooks import HOOK_MARKER, HOOKS_LABEL, install_hook, uninstall_hook
from eenv.repository import GitRepository
from eenv.utils import NotARepository

pytestmark = pytest.mark.skipif(
    shutil.which('git') is None, reason="git is not installed")


@pytest.fixture()
def repository(tmp_path):
    git.Repo.init(tmp_path)
    return GitRepository.discover(tmp_path)


def test_discover_from_subdirectory(repository):
    nested = repository.root / 'a' / 'b'
    nested.mkdir(parents=True)
    assert GitRepository.discover(nested).root == repository.root


def test_not_a_repository(tmp_path_factory):
    with pytest.raises(NotARepository):
        GitRepository.discover(tmp_path_factory.mktemp('plain'))


def test_staged_files_and_stage(repository):
    (repository.root / '.env.example').write_text('A=\n')
    (repository.root / 'with space.txt').write_text('x')
    assert repository.staged_files() == []

    repository.stage([repository.root / '.env.example', repository.root / 'with space.txt'])

    assert sorted(repository.staged_files()) == [
        repository.root / '.env.example',
        repository.root / 'with space.txt',
    ]


def test_install_hook(repository):
    written = install_hook(repository, executable='/usr/bin/python3')

    hooks = repository.hooks_directory()
    script = hooks / 'pre-commit'
    assert set(written) == {script, hooks / 'pre-commit.ps1'}
    assert HOOK_MARKER in script.read_text()
    assert '"/usr/bin/python3" -m eenv pre-commit --write' in script.read_text()
    assert os.access(script, os.X_OK)
    # Hooks under .git/ are never tracked, so .gitignore is left alone
    assert not (repository.root / '.gitignore').exists()

    assert install_hook(repository, executable='/usr/bin/python3') == []


def test_install_keeps_foreign_hook(repository):
    hooks = repository.hooks_directory()
    hooks.mkdir(parents=True, exist_ok=True)
    (hooks / 'pre-commit').write_text('#!/bin/sh\necho mine\n')

    install_hook(repository)
    assert (hooks / 'pre-commit').read_text() == '#!/bin/sh\necho mine\n'

    install_hook(repository, force=True)
    assert HOOK_MARKER in (hooks / 'pre-commit').read_text()
    backups = list(hooks.glob('pre-commit.bak.*'))
    assert [b.read_text() for b in backups] == ['#!/bin/sh\necho mine\n']


def test_uninstall_hook(repository):
    install_hook(repository)
    hooks = repository.hooks_directory()
    (hooks / 'pre-commit.ps1').write_text('foreign\n')

    removed = uninstall_hook(repository)

    assert removed == [hooks / 'pre-commit']
    assert (hooks / 'pre-commit.ps1').exists()
    assert uninstall_hook(repository, force=True) == [hooks / 'pre-commit.ps1']


def test_hooks_inside_worktree_are_ignored(repository):
    repository.repo.git.config('core.hooksPath', '.githooks')

    install_hook(repository)

    assert (repository.root / '.githooks' / 'pre-commit').exists()
    lines = (repository.root / '.gitignore').read_text().splitlines()
    assert lines == [HOOKS_LABEL, '.githooks/pre-commit', '.githooks/pre-commit.ps1']
