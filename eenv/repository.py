import logging
import pathlib
import typing

import attr
import git

from .utils import NotARepository

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class GitRepository:
    """The few things eenv needs from git: staged files, staging and hooks."""
    repo: git.Repo = attr.ib()

    @classmethod
    def discover(cls, path: pathlib.Path) -> 'GitRepository':
        try:
            repo = git.Repo(path, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            raise NotARepository(f"{path} is not a git repository")
        if repo.working_tree_dir is None:
            raise NotARepository(f"{path} is a bare git repository")
        return cls(repo=repo)

    @property
    def root(self) -> pathlib.Path:
        return pathlib.Path(self.repo.working_tree_dir).resolve()

    def staged_files(self) -> typing.List[pathlib.Path]:
        output = self.repo.git.diff('--name-only', '--cached', '-z')
        return [self.root / name for name in output.split('\0') if name]

    def stage(self, paths: typing.Sequence[pathlib.Path]) -> None:
        if not paths:
            return
        log.debug(f"Staging {len(paths)} files")
        self.repo.git.add('--', *(str(path) for path in paths))

    def hooks_directory(self) -> pathlib.Path:
        relative = self.repo.git.rev_parse('--git-path', 'hooks')
        return (self.root / relative).resolve()
