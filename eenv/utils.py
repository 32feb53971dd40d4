import logging
import os
import pathlib
import string
import time
import typing

import click
from Crypto.Random import get_random_bytes

log = logging.getLogger(__name__)

RandomBytes = typing.Callable[[int], bytes]

KEY_ALPHABET = string.ascii_letters + string.digits
KEY_LENGTH = 44

# Largest multiple of the alphabet size that fits in a byte, used to keep
# the generated characters uniformly distributed.
_KEY_BYTE_LIMIT = 256 - (256 % len(KEY_ALPHABET))


class EenvException(click.ClickException):
    pass


class InvalidConfig(EenvException):
    pass


class InvalidKey(EenvException):
    pass


class DecryptionError(EenvException):
    pass


class NotARepository(EenvException):
    pass


class RawSecretsStaged(EenvException):
    pass


def find_repo_root(start: pathlib.Path) -> pathlib.Path:
    """
    Ascend from a directory until one containing a '.git' marker is found.

    Falls back to the (resolved) starting directory.
    """
    start = start.resolve()
    for directory in (start, *start.parents):
        if (directory / '.git').exists():
            return directory
    return start


def temporary_path(path: pathlib.Path, tag: str = 'tmp') -> pathlib.Path:
    """A sibling path that will never be mistaken for an environment file."""
    return path.with_name(f'.~{path.name}.{tag}')


def write_atomic(
        path: pathlib.Path,
        contents: typing.Union[str, bytes]) -> None:
    """
    Replace a file's contents so that a crash leaves either the old or the new
    contents, never a mix of the two.
    """
    if isinstance(contents, str):
        contents = contents.encode('utf-8')

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = temporary_path(path)
    try:
        with tmp.open('wb') as f:
            f.write(contents)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    log.debug(f"Wrote {len(contents)} bytes to {path}")


def backup_path(path: pathlib.Path) -> pathlib.Path:
    """Return an unused, timestamped sibling path to back a file up to."""
    stamp = int(time.time())
    candidate = path.with_name(f'{path.name}.bak.{stamp}')
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f'{path.name}.bak.{stamp}.{counter}')
        counter += 1
    return candidate


def generate_key(
        random_bytes: RandomBytes = get_random_bytes,
        length: int = KEY_LENGTH) -> str:
    """Generate a random alphanumeric project key."""
    chars: typing.List[str] = []
    while len(chars) < length:
        for byte in random_bytes(length):
            if byte < _KEY_BYTE_LIMIT and len(chars) < length:
                chars.append(KEY_ALPHABET[byte % len(KEY_ALPHABET)])
    return ''.join(chars)
