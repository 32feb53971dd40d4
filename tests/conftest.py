import pathlib
import typing

import attr
import click.testing
import pytest

import eenv.cli
from eenv.crypto import Cipher
from eenv.workflows import Project

KEY = 'correct-horse-battery-staple'


@pytest.fixture()
def root(tmp_path: pathlib.Path) -> pathlib.Path:
    """An empty directory that looks like the root of a repository."""
    (tmp_path / '.git').mkdir()
    return tmp_path.resolve()


@pytest.fixture()
def write(root):
    def write_func(name: str, contents: typing.Union[str, bytes]) -> pathlib.Path:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, bytes):
            path.write_bytes(contents)
        else:
            path.write_text(contents)
        return path

    return write_func


@attr.s()
class FakePrompt:
    answers: typing.List[str] = attr.ib()
    messages: typing.List[str] = attr.ib(factory=list)

    def __call__(self, message: str) -> str:
        self.messages.append(message)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {message}")
        return self.answers.pop(0)


@pytest.fixture()
def prompt():
    return FakePrompt(answers=[])


@attr.s()
class FakeRepository:
    staged: typing.List[pathlib.Path] = attr.ib(factory=list)
    added: typing.List[pathlib.Path] = attr.ib(factory=list)

    def staged_files(self) -> typing.List[pathlib.Path]:
        return list(self.staged)

    def stage(self, paths: typing.Sequence[pathlib.Path]) -> None:
        self.added.extend(paths)


@pytest.fixture()
def repository():
    return FakeRepository()


@pytest.fixture()
def project(root, prompt):
    return Project(root, prompt=prompt)


@pytest.fixture()
def key():
    return KEY


@pytest.fixture()
def cipher(key):
    return Cipher.from_key_string(key)


@pytest.fixture()
def invoke(root):
    def invoke_func(arguments: typing.Sequence[str], input: typing.Optional[str] = None):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        return runner.invoke(
            eenv.cli.main, ['-p', str(root), *arguments], input=input)

    return invoke_func
