"""
Keep the repository's .gitignore in step with the environment files on disk.

Plaintext secrets and the config file must be ignored; skeletons and
encrypted artifacts must never be.
"""

import logging
import pathlib
import typing

import attr

from .config import CONFIG_FILENAME
from .scan import PLAINTEXT, classify_name
from .utils import EenvException, find_repo_root, write_atomic

log = logging.getLogger(__name__)

GITIGNORE_FILENAME = '.gitignore'
LABEL = '# added by eenv'

# Patterns that would hide skeletons or encrypted artifacts from git. Matched
# exactly against a line's core, so wildcard variants outside this list are
# left alone.
BANNED_PATTERNS = frozenset([
    '.env.example',
    '.env*.example',
    '.env.*.example',
    '*.env.example',
    '.env.enc',
    '.env*.enc',
    '.env.*.enc',
    '*.env.enc',
])


@attr.s(frozen=True)
class GitignoreEdit:
    path: pathlib.Path = attr.ib()
    added: typing.Tuple[str, ...] = attr.ib(default=())
    removed: typing.Tuple[str, ...] = attr.ib(default=())
    changed: bool = attr.ib(default=False)


def pattern_core(line: str) -> str:
    """The pattern a line holds, without any comment or surrounding whitespace."""
    return line.split('#', 1)[0].strip()


def to_pattern(path: pathlib.Path, root: pathlib.Path) -> typing.Optional[str]:
    try:
        relative = path.relative_to(root)
    except ValueError:
        log.warning(f"{path} is outside of {root}, not adding it to {GITIGNORE_FILENAME}")
        return None
    pattern = relative.as_posix()
    if pattern in ('', '.'):
        return '/'
    return pattern.replace(' ', '\\ ')


def render(lines: typing.Sequence[str]) -> str:
    text = '\n'.join(lines)
    if not text.endswith('\n'):
        text += '\n'
    return text


def append_block(
        lines: typing.List[str],
        patterns: typing.Iterable[str],
        label: str) -> typing.List[str]:
    """Append the patterns that are not present yet under a labeled comment."""
    existing = {pattern_core(line) for line in lines}
    missing = [p for p in patterns if p not in existing]
    if missing:
        if lines and lines[-1].strip():
            lines.append('')
        lines.append(label)
        lines.extend(missing)
    return missing


def edit(
        start: pathlib.Path,
        patterns: typing.Iterable[str],
        label: str = LABEL,
        remove_banned: bool = False) -> GitignoreEdit:
    root = find_repo_root(start)
    path = root / GITIGNORE_FILENAME
    try:
        original = path.read_text(encoding='utf-8') if path.exists() else ''
    except UnicodeDecodeError as error:
        raise EenvException(f"Cannot read {path}: not valid UTF-8 ({error.reason})")
    lines = original.splitlines()

    removed: typing.List[str] = []
    if remove_banned:
        kept = []
        for line in lines:
            if pattern_core(line) in BANNED_PATTERNS:
                removed.append(line)
            else:
                kept.append(line)
        lines = kept

    added = append_block(lines, patterns, label)

    text = render(lines) if lines else ''
    changed = text != original
    if changed:
        log.info(f"Updating {path}: added {added}, removed {removed}")
        write_atomic(path, text)

    return GitignoreEdit(
        path=path, added=tuple(added), removed=tuple(removed), changed=changed)


def required_patterns(
        root: pathlib.Path,
        plaintext_files: typing.Iterable[pathlib.Path],
        extra: typing.Iterable[str]) -> typing.List[str]:
    required = set(extra)
    for path in plaintext_files:
        if classify_name(path.name) != PLAINTEXT:
            continue
        pattern = to_pattern(path, root)
        if pattern is not None:
            required.add(pattern)
    return sorted(required)


def reconcile(
        start: pathlib.Path,
        plaintext_files: typing.Iterable[pathlib.Path]) -> GitignoreEdit:
    """
    Drop banned patterns and make sure every plaintext file is ignored.

    The config file is always required to be ignored too.
    """
    root = find_repo_root(start)
    patterns = required_patterns(root, plaintext_files, [CONFIG_FILENAME])
    return edit(root, patterns, remove_banned=True)


def ensure_ignored(
        start: pathlib.Path,
        patterns: typing.Iterable[str],
        label: str = LABEL) -> GitignoreEdit:
    return edit(start, list(patterns), label=label)
