import itertools

import pytest

from eenv.utils import (
    KEY_ALPHABET,
    KEY_LENGTH,
    backup_path,
    find_repo_root,
    generate_key,
    write_atomic,
)


def test_write_atomic_creates_parents(tmp_path):
    path = tmp_path / 'a' / 'b' / 'file.txt'
    write_atomic(path, 'hello')
    assert path.read_text() == 'hello'


def test_write_atomic_replaces_and_leaves_no_temp_file(tmp_path):
    path = tmp_path / '.env'
    path.write_text('old')
    write_atomic(path, b'new')
    assert path.read_bytes() == b'new'
    assert sorted(p.name for p in tmp_path.iterdir()) == ['.env']


def test_write_atomic_keeps_old_contents_on_failure(tmp_path, monkeypatch):
    path = tmp_path / 'file.txt'
    path.write_text('old')

    def broken_replace(src, dst):
        raise OSError("disk on fire")

    monkeypatch.setattr('eenv.utils.os.replace', broken_replace)
    with pytest.raises(OSError):
        write_atomic(path, 'new')
    assert path.read_text() == 'old'
    assert sorted(p.name for p in tmp_path.iterdir()) == ['file.txt']


def test_backup_path_is_unused_sibling(tmp_path):
    path = tmp_path / 'eenv.config.json'
    first = backup_path(path)
    assert first.parent == tmp_path
    assert first.name.startswith('eenv.config.json.bak.')
    first.write_text('x')
    assert backup_path(path) != first


def test_find_repo_root_ascends(root):
    nested = root / 'one' / 'two'
    nested.mkdir(parents=True)
    assert find_repo_root(nested) == root


def test_find_repo_root_falls_back_to_start(tmp_path):
    # tmp_path lives outside of any repository in a sane test environment
    start = tmp_path / 'somewhere'
    start.mkdir()
    result = find_repo_root(start)
    assert result == start.resolve() or (result / '.git').exists()


def test_generate_key_shape():
    key = generate_key()
    assert len(key) == KEY_LENGTH
    assert all(c in KEY_ALPHABET for c in key)


def test_generate_key_uses_random_bytes_provider():
    counter = itertools.count()

    def random_bytes(n):
        return bytes(next(counter) % 256 for _ in range(n))

    assert generate_key(random_bytes, length=3) == 'abc'


def test_generate_key_rejects_biased_bytes():
    answers = iter([bytes([255, 254, 0]), bytes([1, 2, 3])])
    assert generate_key(lambda n: next(answers), length=3) == 'abc'
