"""
Install a git pre-commit hook that runs 'eenv pre-commit --write'.
"""

import logging
import pathlib
import shutil
import sys
import typing

from . import gitignore
from .repository import GitRepository
from .utils import backup_path, write_atomic

log = logging.getLogger(__name__)

HOOK_MARKER = '# managed-by-eenv'
HOOK_NAMES = ('pre-commit', 'pre-commit.ps1')
HOOKS_LABEL = '# added by eenv (ignore generated git hooks)'


def command(executable: str = sys.executable) -> str:
    return f'"{executable}" -m eenv pre-commit --write'


def hook_contents(executable: str = sys.executable) -> typing.Dict[str, str]:
    return {
        'pre-commit': (
            '#!/usr/bin/env bash\n'
            f'{HOOK_MARKER}\n'
            'set -euo pipefail\n'
            f'exec {command(executable)}\n'),
        'pre-commit.ps1': (
            f'{HOOK_MARKER}\n'
            '$ErrorActionPreference = "Stop"\n'
            f'& {command(executable)}\n'
            'exit $LASTEXITCODE\n'),
    }


def write_hook(path: pathlib.Path, desired: str, force: bool) -> bool:
    """Write a hook unless it belongs to someone else; returns True if written."""
    if path.exists():
        existing = path.read_text(encoding='utf-8', errors='replace')
        ours = HOOK_MARKER in existing
        if not ours and not force:
            log.warning(f"Leaving existing hook {path} alone (use --force to replace it)")
            return False
        if existing == desired:
            return False
        if not ours:
            backup = backup_path(path)
            shutil.copy2(path, backup)
            log.info(f"Backed up {path} to {backup}")

    write_atomic(path, desired)
    return True


def install_hook(
        repository: GitRepository,
        force: bool = False,
        executable: str = sys.executable) -> typing.List[pathlib.Path]:
    hooks_dir = repository.hooks_directory()
    hooks_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, contents in hook_contents(executable).items():
        path = hooks_dir / name
        if write_hook(path, contents, force):
            written.append(path)

    script = hooks_dir / 'pre-commit'
    if script.exists():
        script.chmod(0o755)

    ensure_hooks_ignored(repository)
    return written


def uninstall_hook(
        repository: GitRepository,
        force: bool = False) -> typing.List[pathlib.Path]:
    removed = []
    for name in HOOK_NAMES:
        path = repository.hooks_directory() / name
        if not path.exists():
            continue
        if force or HOOK_MARKER in path.read_text(encoding='utf-8', errors='replace'):
            path.unlink()
            removed.append(path)
    return removed


def ensure_hooks_ignored(repository: GitRepository) -> typing.Optional[gitignore.GitignoreEdit]:
    """
    Ignore the generated hooks if git keeps its hooks inside the working tree.
    """
    root = repository.root
    try:
        relative = repository.hooks_directory().relative_to(root)
    except ValueError:
        return None

    if relative.parts[:1] == ('.git',):
        return None

    patterns = [(relative / name).as_posix() for name in HOOK_NAMES]
    return gitignore.ensure_ignored(root, patterns, label=HOOKS_LABEL)
