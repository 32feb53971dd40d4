import logging
import pathlib

import click
import git

from . import __doc__, __version__
from .hooks import install_hook, uninstall_hook
from .repository import GitRepository
from .utils import EenvException, find_repo_root
from .workflows import Project, rel

log = logging.getLogger(__name__)


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


def default_root() -> pathlib.Path:
    return find_repo_root(pathlib.Path.cwd())


force_option = click.option(
    '--force/--no-force',
    default=False,
    help="Re-encrypt files even when their artifact is up to date.")


@click.group(help=__doc__)
@click.option(
    '-p', '--path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=default_root,
    required=True,
    help="Defaults to the current git repository.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.pass_context
def main(ctx, path: pathlib.Path, debug: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    ctx.obj = Project(path.resolve())


@main.command()
def version():
    """Show the application version."""
    click.echo(f"eenv {__version__}")


@main.command()
@click.pass_obj
def status(project: Project):
    """Show which kinds of environment files exist."""
    project.status()


@main.command()
@force_option
@click.option(
    '--hook/--no-hook',
    default=True,
    help="Install the pre-commit hook.")
@click.pass_obj
def init(project: Project, force: bool, hook: bool):
    """
    Decrypt, skeleton, ignore and encrypt every environment file.

    Safe to run any number of times.
    """
    if hook:
        try:
            install_hook(GitRepository.discover(project.root))
        except (EenvException, git.exc.GitError, OSError) as error:
            click.secho(
                f"[hook] WARN: could not install pre-commit hook: {error}",
                fg='yellow', err=True)
    project.init(force=force)


@main.command(name='pre-commit')
@click.option(
    '--write',
    default=False,
    is_flag=True,
    help="Refresh and stage skeletons, .gitignore and encrypted files.")
@force_option
@click.pass_obj
def pre_commit(project: Project, write: bool, force: bool):
    """Refuse to commit plaintext environment files."""
    project.pre_commit(GitRepository.discover(project.root), write=write, force=force)


@main.group()
def hook():
    """Manage the git pre-commit hook."""


@hook.command()
@click.option(
    '--force',
    default=False,
    is_flag=True,
    help="Replace a pre-commit hook not installed by eenv (after backing it up).")
@click.pass_obj
def install(project: Project, force: bool):
    """Install the pre-commit hook."""
    written = install_hook(GitRepository.discover(project.root), force=force)
    for path in written:
        click.echo(f"[hook] wrote {rel(path)}")
    click.echo(f"[hook] installed (force={str(force).lower()})")


@hook.command()
@click.option(
    '--force',
    default=False,
    is_flag=True,
    help="Remove pre-commit hooks even if eenv did not install them.")
@click.pass_obj
def uninstall(project: Project, force: bool):
    """Remove the pre-commit hook."""
    for path in uninstall_hook(GitRepository.discover(project.root), force=force):
        click.echo(f"[hook] removed {rel(path)}")
    click.echo("[hook] uninstalled")
