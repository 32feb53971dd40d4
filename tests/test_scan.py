import os

import pytest

from eenv.scan import (
    PLAINTEXT,
    SKELETON,
    ENCRYPTED,
    ClassifiedFiles,
    EnvScanner,
    RepoState,
    classify_name,
    compute_state,
)
from eenv.utils import EenvException


@pytest.mark.parametrize('name,category', [
    ('.env', PLAINTEXT),
    ('.env.local', PLAINTEXT),
    ('.env.example', SKELETON),
    ('.env.local.example', SKELETON),
    ('.env.enc', ENCRYPTED),
    ('.env.production.enc', ENCRYPTED),
])
def test_classify_name(name, category):
    assert classify_name(name) == category


def test_scan_partitions_files(root, write):
    paths = [
        write('.env', 'A=1'),
        write('.env.example', 'A='),
        write('.env.enc', b'x'),
        write('app/.env.local', 'B=2'),
        write('app/.env.local.enc', b'x'),
        write('README.md', 'not an env file'),
        write('app/settings.env', 'not an env file either'),
    ]
    files = EnvScanner(root).scan()

    assert files.plaintext == (root / '.env', root / 'app/.env.local')
    assert files.skeleton == (root / '.env.example',)
    assert files.encrypted == (root / '.env.enc', root / 'app/.env.local.enc')
    assert set(files) == set(paths[:5])
    assert len(files) == 5


def test_from_paths_deduplicates_and_sorts(root):
    b, a = root / 'b/.env', root / 'a/.env'
    files = ClassifiedFiles.from_paths([b, a, b])
    assert files.plaintext == (a, b)


def test_scan_skips_git_directory(root, write):
    write('.git/.env', 'A=1')
    assert len(EnvScanner(root).scan()) == 0


def test_scan_honours_ignore_file(root, write):
    write('.eenvignore', 'vendor/\n.env.test\n')
    write('.env', 'A=1')
    write('.env.test', 'A=1')
    write('vendor/.env', 'A=1')
    assert EnvScanner(root).scan().plaintext == (root / '.env',)


def test_nested_ignore_file_can_reinclude(root, write):
    write('.eenvignore', '.env.local\n')
    write('sub/.eenvignore', '!.env.local\n')
    write('.env.local', 'A=1')
    write('sub/.env.local', 'A=1')
    assert EnvScanner(root).scan().plaintext == (root / 'sub/.env.local',)


def test_scan_does_not_follow_symlinks(root, write, tmp_path_factory):
    outside = tmp_path_factory.mktemp('outside')
    (outside / '.env').write_text('A=1')
    os.symlink(outside, root / 'linked')
    os.symlink(outside / '.env', root / '.env.link')
    write('.env', 'A=1')
    assert EnvScanner(root).scan().plaintext == (root / '.env',)


def test_scan_missing_root(tmp_path):
    with pytest.raises(EenvException):
        EnvScanner(tmp_path / 'missing').scan()


def test_compute_state():
    files = ClassifiedFiles.from_paths([])
    assert compute_state(files, False) == RepoState(
        has_encrypted=False,
        has_skeleton=False,
        has_plaintext=False,
        has_valid_config=False)


def test_compute_state_from_scan(root, write):
    write('.env', 'A=1')
    write('.env.enc', b'x')
    state = compute_state(EnvScanner(root).scan(), True)
    assert state.has_plaintext and state.has_encrypted and state.has_valid_config
    assert not state.has_skeleton
