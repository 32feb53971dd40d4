"""
The init and pre-commit workflows, driven by the state of the repository.
"""

import logging
import os.path
import pathlib
import typing

import attr
import click
from Crypto.Random import get_random_bytes

from . import config, crypto, gitignore, skeletons
from .scan import ClassifiedFiles, EnvScanner, RepoState, compute_state, is_plaintext_name
from .utils import EenvException, RandomBytes, RawSecretsStaged

log = logging.getLogger(__name__)


class Repository(typing.Protocol):
    def staged_files(self) -> typing.List[pathlib.Path]: ...

    def stage(self, paths: typing.Sequence[pathlib.Path]) -> None: ...


def rel(path: pathlib.Path) -> str:
    """Convert a path to a string relative to the working directory, for display."""
    return os.path.relpath(path.as_posix(), pathlib.Path.cwd().as_posix())


def describe_config(status: config.ConfigStatus) -> typing.Optional[str]:
    if isinstance(status, config.Created):
        return f"created {config.CONFIG_FILENAME}"
    if isinstance(status, config.FixedMissingKey):
        return f"injected key into {config.CONFIG_FILENAME}"
    if isinstance(status, config.RewrittenFromInvalid):
        return f"repaired {config.CONFIG_FILENAME} (backup: {rel(status.backup)})"
    if isinstance(status, config.Valid):
        return None
    raise TypeError(f"Unknown config status {status!r}")


@attr.s(frozen=True)
class Project:
    root: pathlib.Path = attr.ib(converter=pathlib.Path)
    prompt: config.KeyPrompt = attr.ib(default=config.prompt_for_key)
    random_bytes: RandomBytes = attr.ib(default=get_random_bytes)

    @property
    def scanner(self) -> EnvScanner:
        return EnvScanner(self.root)

    def scan(self) -> ClassifiedFiles:
        return self.scanner.scan()

    def state(self, files: typing.Optional[ClassifiedFiles] = None) -> RepoState:
        files = files if files is not None else self.scan()
        return compute_state(files, config.validate_config(self.root))

    def cipher(self) -> crypto.Cipher:
        return crypto.Cipher.from_key_string(
            config.read_key(self.root), random_bytes=self.random_bytes)

    # Steps

    def decrypt(self, files: ClassifiedFiles) -> typing.List[crypto.Transfer]:
        results = crypto.decrypt_all(self.cipher(), files.encrypted)
        self.report_transfers(results)
        return results

    def bootstrap(self, files: ClassifiedFiles) -> typing.List[crypto.Transfer]:
        results = crypto.bootstrap_key(
            self.root, files.encrypted,
            prompt=self.prompt, random_bytes=self.random_bytes)
        click.echo("[enc] key accepted, config created, decrypted where possible.", err=True)
        self.report_transfers(results)
        return results

    def generate_examples(self, files: ClassifiedFiles) -> typing.List[skeletons.ExampleResult]:
        results = skeletons.generate_examples(files.plaintext)
        for result in results:
            line = f"[env-example] {result.action.value:<11} {rel(result.source)}  ->  {rel(result.target)}"
            if result.action is skeletons.ExampleAction.FAILED:
                click.secho(f"{line} ({result.error})", fg='yellow', err=True)
            else:
                click.echo(line)
        return results

    def reconcile_gitignore(
            self, files: ClassifiedFiles) -> typing.Optional[gitignore.GitignoreEdit]:
        try:
            report = gitignore.reconcile(self.root, files.plaintext)
        except EenvException as error:
            click.secho(f"[gitignore] error: {error.message}", fg='yellow', err=True)
            return None
        if report.changed:
            click.echo(
                f"[gitignore] updated: {rel(report.path)}\n"
                f"  + added:   {list(report.added)}\n"
                f"  - removed: {list(report.removed)}")
        else:
            click.echo(f"[gitignore] no changes needed ({rel(report.path)})")
        return report

    def ensure_config(self) -> config.ConfigStatus:
        status = config.ensure_config(
            self.root, prompt=self.prompt, random_bytes=self.random_bytes)
        message = describe_config(status)
        if message:
            click.echo(f"[config] {message}", err=True)
        return status

    def encrypt(self, files: ClassifiedFiles, force: bool = False) -> typing.List[crypto.Transfer]:
        results = crypto.encrypt_all(self.cipher(), files.plaintext, force=force)
        self.report_transfers(results)
        return results

    @staticmethod
    def report_transfers(results: typing.Iterable[crypto.Transfer]) -> None:
        for result in results:
            outcome = result.outcome
            if outcome is crypto.Outcome.FAILED:
                click.secho(
                    f"[enc] WARN: could not process {rel(result.source)} ({result.error})",
                    fg='yellow', err=True)
            elif outcome is crypto.Outcome.SKIPPED:
                click.echo(f"[enc] skip decrypt (target exists): {rel(result.target)}", err=True)
            elif outcome is crypto.Outcome.UNCHANGED:
                click.echo(f"[enc] unchanged {rel(result.target)}")
            elif outcome in (crypto.Outcome.ENCRYPTED, crypto.Outcome.DECRYPTED):
                click.echo(f"[enc] {outcome.value} {rel(result.source)} -> {rel(result.target)}")
            else:
                raise TypeError(f"Unknown outcome {outcome!r}")

    # Workflows

    def status(self) -> typing.Tuple[RepoState, ClassifiedFiles]:
        files = self.scan()
        state = self.state(files)
        click.echo("[state]")
        click.echo(f"enc      = {str(state.has_encrypted).lower()}")
        click.echo(f"example  = {str(state.has_skeleton).lower()}")
        click.echo(f"env      = {str(state.has_plaintext).lower()}")
        click.echo(f"eenvjson = {str(state.has_valid_config).lower()}")
        for title, paths in (
                ('real env files', files.plaintext),
                ('example env files', files.skeleton),
                ('encrypted env files', files.encrypted)):
            click.echo(f"--- {title} ---")
            for path in paths:
                click.echo(rel(path))
        return state, files

    def init(self, force: bool = False) -> RepoState:
        """
        Bring the repository to a consistent state.

        Artifacts are decrypted first (recovering the key from the operator if
        the config is unusable), then every plaintext file gets a skeleton if
        none exist yet, an ignore rule, and a fresh artifact.
        """
        files = self.scan()
        state = self.state(files)
        log.info(f"Repository state: {state}")

        if state.has_encrypted:
            if state.has_valid_config:
                self.decrypt(files)
            else:
                self.bootstrap(files)

        if state.has_plaintext:
            files = self.scan()
            if not state.has_skeleton:
                self.generate_examples(files)
            self.reconcile_gitignore(files)
            self.ensure_config()
            self.encrypt(files, force=force)

        return state

    def pre_commit(
            self,
            repository: Repository,
            write: bool = False,
            force: bool = False) -> typing.List[pathlib.Path]:
        """
        Refuse to commit plaintext secrets.

        With write=True, also refresh skeletons, the ignore file, the config
        and the artifacts, staging every file that was produced or modified.
        Returns the staged paths.
        """
        offenders = [p for p in repository.staged_files() if is_plaintext_name(p.name)]
        if offenders:
            listing = '\n'.join(f"  - {rel(p)}" for p in offenders)
            raise RawSecretsStaged(
                f"[pre-commit] refusing to commit raw .env files:\n{listing}\n"
                f"Hint: encrypt them to .env*.enc or add them to .gitignore.")

        if not write:
            return []

        files = self.scan()
        if not files.plaintext:
            return []

        staged: typing.List[pathlib.Path] = []

        examples = [
            result.target for result in self.generate_examples(files)
            if result.action in (skeletons.ExampleAction.CREATED, skeletons.ExampleAction.OVERWRITTEN)]
        repository.stage(examples)
        staged += examples

        report = self.reconcile_gitignore(files)
        if report is not None and report.changed:
            repository.stage([report.path])
            staged.append(report.path)

        self.ensure_config()

        produced = [
            result.target for result in self.encrypt(files, force=force)
            if result.outcome is crypto.Outcome.ENCRYPTED]
        repository.stage(produced)
        staged += produced

        return staged
