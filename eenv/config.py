"""
The project config file holds the key every encrypted artifact is protected
by. It is created when missing, repaired when broken, and backed up before
anything destructive happens to it.
"""

import json
import logging
import pathlib
import typing

import attr
import blake3
import click
from Crypto.Random import get_random_bytes

from .utils import (
    InvalidConfig,
    InvalidKey,
    RandomBytes,
    backup_path,
    generate_key,
    write_atomic,
)

log = logging.getLogger(__name__)

CONFIG_FILENAME = 'eenv.config.json'
KEY_FIELD = 'key'

KeyPrompt = typing.Callable[[str], str]


class ConfigStatus:
    """Base class for the outcomes of ensure_config()."""


@attr.s(frozen=True)
class Created(ConfigStatus):
    pass


@attr.s(frozen=True)
class Valid(ConfigStatus):
    pass


@attr.s(frozen=True)
class FixedMissingKey(ConfigStatus):
    pass


@attr.s(frozen=True)
class RewrittenFromInvalid(ConfigStatus):
    backup: pathlib.Path = attr.ib()


def config_path(root: pathlib.Path) -> pathlib.Path:
    return root / CONFIG_FILENAME


def prompt_for_key(message: str) -> str:
    return click.prompt(
        message, hide_input=True, default='', show_default=False, err=True)


def ask_for_key(prompt: KeyPrompt, message: str) -> str:
    """Ask the operator for a key, rejecting anything unusable."""
    key = prompt(message).strip()
    if not key:
        raise InvalidKey("empty key not allowed")
    try:
        key.encode('utf-8')
    except UnicodeEncodeError:
        raise InvalidKey("key is not valid UTF-8")
    return key


def has_usable_key(value: typing.Any) -> bool:
    return isinstance(value, dict) \
        and isinstance(value.get(KEY_FIELD), str) \
        and bool(value[KEY_FIELD].strip())


def render(value: typing.Dict[str, typing.Any]) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) + '\n'


def validate_config(root: pathlib.Path) -> bool:
    path = config_path(root)
    if not path.exists():
        return False
    try:
        value = json.loads(path.read_text(encoding='utf-8'))
    except (ValueError, UnicodeDecodeError):
        return False
    return has_usable_key(value)


def write_config_with_key(root: pathlib.Path, key: str) -> None:
    write_atomic(config_path(root), render({KEY_FIELD: key}))


def ensure_config(
        root: pathlib.Path,
        prompt: KeyPrompt = prompt_for_key,
        random_bytes: RandomBytes = get_random_bytes) -> ConfigStatus:
    """Make sure the config file exists and holds a usable key."""
    path = config_path(root)

    if not path.exists():
        log.info(f"Creating {path}")
        write_config_with_key(root, generate_key(random_bytes))
        return Created()

    raw = path.read_bytes()
    try:
        value = json.loads(raw.decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        log.warning(f"{path} is not valid JSON")
        key = ask_for_key(
            prompt, f"eenv: existing {CONFIG_FILENAME} is invalid.\nEnter key to use")
        return RewrittenFromInvalid(backup=rewrite(path, raw, key))

    if not isinstance(value, dict):
        log.warning(f"{path} does not hold a JSON object")
        return RewrittenFromInvalid(
            backup=rewrite(path, raw, generate_key(random_bytes)))

    if not has_usable_key(value):
        log.info(f"Injecting a new key into {path}")
        value[KEY_FIELD] = generate_key(random_bytes)
        write_atomic(path, render(value))
        return FixedMissingKey()

    return Valid()


def rewrite(path: pathlib.Path, original: bytes, key: str) -> pathlib.Path:
    backup = backup_path(path)
    write_atomic(backup, original)
    log.info(f"Backed up {path} to {backup}")
    write_atomic(path, render({KEY_FIELD: key}))
    return backup


def read_key(root: pathlib.Path) -> str:
    path = config_path(root)
    try:
        value = json.loads(path.read_text(encoding='utf-8'))
    except (ValueError, UnicodeDecodeError) as error:
        raise InvalidConfig(f"bad {CONFIG_FILENAME}: {error}")

    if not has_usable_key(value):
        raise InvalidConfig(f"{CONFIG_FILENAME} missing non-empty \"{KEY_FIELD}\"")

    return value[KEY_FIELD].strip()


def derive_key(key: str) -> bytes:
    """Derive the 256-bit symmetric key used for encryption from a key string."""
    if not key.strip():
        raise InvalidKey("empty key")
    return blake3.blake3(key.encode('utf-8')).digest()
