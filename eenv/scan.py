"""
Discover environment files in a directory tree and sort them into plaintext
secrets, skeletons and encrypted artifacts.
"""

import logging
import os
import pathlib
import stat
import time
import typing

import attr
import pathspec

from .utils import EenvException

log = logging.getLogger(__name__)

ENV_PREFIX = '.env'
EXAMPLE_SUFFIX = '.example'
ENCRYPTED_SUFFIX = '.enc'
IGNORE_FILENAME = '.eenvignore'
VCS_DIRECTORY = '.git'

PLAINTEXT = 'plaintext'
SKELETON = 'skeleton'
ENCRYPTED = 'encrypted'

Paths = typing.Tuple[pathlib.Path, ...]


def is_env_name(name: str) -> bool:
    return name.startswith(ENV_PREFIX)


def classify_name(name: str) -> str:
    """Decide which category a file name belongs to, by suffix alone."""
    if name.endswith(EXAMPLE_SUFFIX):
        return SKELETON
    if name.endswith(ENCRYPTED_SUFFIX):
        return ENCRYPTED
    return PLAINTEXT


def is_plaintext_name(name: str) -> bool:
    return is_env_name(name) and classify_name(name) == PLAINTEXT


@attr.s(frozen=True)
class ClassifiedFiles:
    plaintext: Paths = attr.ib(default=())
    skeleton: Paths = attr.ib(default=())
    encrypted: Paths = attr.ib(default=())

    @classmethod
    def from_paths(cls, paths: typing.Iterable[pathlib.Path]) -> 'ClassifiedFiles':
        groups: typing.Dict[str, typing.List[pathlib.Path]] = {
            PLAINTEXT: [], SKELETON: [], ENCRYPTED: []}
        for path in sorted(set(paths)):
            groups[classify_name(path.name)].append(path)
        return cls(
            plaintext=tuple(groups[PLAINTEXT]),
            skeleton=tuple(groups[SKELETON]),
            encrypted=tuple(groups[ENCRYPTED]))

    def __iter__(self) -> typing.Iterator[pathlib.Path]:
        return iter(sorted((*self.plaintext, *self.skeleton, *self.encrypted)))

    def __len__(self) -> int:
        return len(self.plaintext) + len(self.skeleton) + len(self.encrypted)


@attr.s(frozen=True)
class RepoState:
    has_encrypted: bool = attr.ib()
    has_skeleton: bool = attr.ib()
    has_plaintext: bool = attr.ib()
    has_valid_config: bool = attr.ib()


def compute_state(files: ClassifiedFiles, has_valid_config: bool) -> RepoState:
    return RepoState(
        has_encrypted=bool(files.encrypted),
        has_skeleton=bool(files.skeleton),
        has_plaintext=bool(files.plaintext),
        has_valid_config=has_valid_config)


@attr.s(frozen=True)
class IgnoreRules:
    """The rules from one ignore file, relative to the directory holding it."""
    base: pathlib.Path = attr.ib()
    spec: pathspec.GitIgnoreSpec = attr.ib()

    @classmethod
    def load(cls, path: pathlib.Path) -> 'IgnoreRules':
        lines = path.read_text(encoding='utf-8').splitlines()
        return cls(base=path.parent, spec=pathspec.GitIgnoreSpec.from_lines(lines))

    def check(self, path: pathlib.Path, is_dir: bool) -> typing.Optional[bool]:
        """True if ignored, False if re-included, None if no rule matched."""
        relative = path.relative_to(self.base).as_posix()
        if is_dir:
            relative += '/'
        return self.spec.check_file(relative).include


@attr.s(frozen=True)
class EnvScanner:
    """
    Walk a directory tree looking for environment files.

    Symbolic links are never followed and only regular files qualify. Each
    directory may hold an ignore file (gitignore syntax) whose rules apply to
    everything below it, with deeper files taking precedence.
    """
    root: pathlib.Path = attr.ib(converter=pathlib.Path)
    ignore_filename: str = attr.ib(default=IGNORE_FILENAME)

    def scan(self) -> ClassifiedFiles:
        start = time.perf_counter()
        files = ClassifiedFiles.from_paths(self.find())
        log.debug(f"Scanned {self.root} in "
                  f"{(time.perf_counter() - start) * 1000:.3f} ms")
        return files

    def find(self) -> typing.List[pathlib.Path]:
        log.info(f"Searching for environment files in {self.root}")
        if not self.root.is_dir():
            raise EenvException(f"Cannot search {self.root}: not a directory")

        found: typing.List[pathlib.Path] = []
        rules: typing.Dict[pathlib.Path, typing.Tuple[IgnoreRules, ...]] = {}

        for dirpath, dirnames, filenames in os.walk(
                self.root, onerror=self.walk_error, followlinks=False):
            directory = pathlib.Path(dirpath)
            inherited = rules.get(directory.parent, ()) if directory != self.root else ()
            active = inherited + self.load_rules(directory)
            rules[directory] = active

            dirnames[:] = sorted(
                name for name in dirnames
                if name != VCS_DIRECTORY
                and not self.ignored(directory / name, active, is_dir=True))

            for name in sorted(filenames):
                if not is_env_name(name):
                    continue
                path = directory / name
                if not self.is_regular_file(path):
                    continue
                if self.ignored(path, active, is_dir=False):
                    log.debug(f"Ignoring {path}")
                    continue
                found.append(self.canonical(path))

        log.info(f"Found {len(found)} environment files in {self.root}")
        return sorted(set(found))

    def load_rules(self, directory: pathlib.Path) -> typing.Tuple[IgnoreRules, ...]:
        path = directory / self.ignore_filename
        if not path.is_file():
            return ()
        try:
            return (IgnoreRules.load(path),)
        except (OSError, UnicodeDecodeError) as error:
            log.warning(f"walk error: could not read {path}: {error}")
            return ()

    @staticmethod
    def ignored(
            path: pathlib.Path,
            active: typing.Sequence[IgnoreRules],
            is_dir: bool) -> bool:
        for rules in reversed(active):
            decision = rules.check(path, is_dir)
            if decision is not None:
                return decision
        return False

    @staticmethod
    def is_regular_file(path: pathlib.Path) -> bool:
        try:
            return stat.S_ISREG(os.lstat(path).st_mode)
        except OSError as error:
            log.warning(f"walk error: {error}")
            return False

    @staticmethod
    def canonical(path: pathlib.Path) -> pathlib.Path:
        try:
            return path.resolve(strict=True)
        except (OSError, RuntimeError):
            return path.absolute()

    @staticmethod
    def walk_error(error: OSError) -> None:
        log.warning(f"walk error: {error}")
