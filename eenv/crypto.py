"""
Authenticated encryption of environment files.

An encrypted artifact is laid out as:

\b
    MAGIC (5 bytes, b'EENV1') | NONCE (24 bytes) | CIPHERTEXT | TAG (16 bytes)

The cipher is XChaCha20-Poly1305, keyed by the BLAKE3 hash of the project key.
"""

import enum
import logging
import pathlib
import typing

import attr
from Crypto.Cipher import ChaCha20_Poly1305
from Crypto.Random import get_random_bytes

from . import config, gitignore
from .scan import ENCRYPTED_SUFFIX, PLAINTEXT, classify_name
from .utils import (
    DecryptionError,
    RandomBytes,
    temporary_path,
    write_atomic,
)

log = logging.getLogger(__name__)

MAGIC = b'EENV1'
KEY_SIZE = 32
NONCE_SIZE = 24
TAG_SIZE = 16
MINIMUM_SIZE = len(MAGIC) + NONCE_SIZE + TAG_SIZE

# Errors that only affect a single file during a bulk operation.
FILE_ERRORS = (OSError, DecryptionError)


def encrypted_path_for(path: pathlib.Path) -> pathlib.Path:
    return path.with_name(path.name + ENCRYPTED_SUFFIX)


def decrypted_path_for(path: pathlib.Path) -> pathlib.Path:
    if path.name.endswith(ENCRYPTED_SUFFIX):
        return path.with_name(path.name[:-len(ENCRYPTED_SUFFIX)])
    return path


class Outcome(enum.Enum):
    ENCRYPTED = 'encrypted'
    UNCHANGED = 'unchanged'
    DECRYPTED = 'decrypted'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@attr.s(frozen=True)
class Transfer:
    source: pathlib.Path = attr.ib()
    target: pathlib.Path = attr.ib()
    outcome: Outcome = attr.ib()
    error: typing.Optional[str] = attr.ib(default=None)


def _check_key(instance, attribute, value):
    if len(value) != KEY_SIZE:
        raise ValueError(f"{attribute.name} must be {KEY_SIZE} bytes")


@attr.s(frozen=True, repr=False)
class Cipher:
    key: bytes = attr.ib(validator=_check_key)
    random_bytes: RandomBytes = attr.ib(default=get_random_bytes)

    def __repr__(self):
        return 'Cipher(key=<redacted>)'

    @classmethod
    def from_key_string(
            cls,
            key: str,
            random_bytes: RandomBytes = get_random_bytes) -> 'Cipher':
        return cls(key=config.derive_key(key), random_bytes=random_bytes)

    def seal(self, plaintext: bytes) -> bytes:
        nonce = self.random_bytes(NONCE_SIZE)
        cipher = ChaCha20_Poly1305.new(key=self.key, nonce=nonce)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return MAGIC + nonce + ciphertext + tag

    def open(self, envelope: bytes) -> bytes:
        if len(envelope) < MINIMUM_SIZE:
            raise DecryptionError("enc file too short")
        if envelope[:len(MAGIC)] != MAGIC:
            raise DecryptionError("bad magic/version")

        nonce = envelope[len(MAGIC):len(MAGIC) + NONCE_SIZE]
        ciphertext = envelope[len(MAGIC) + NONCE_SIZE:-TAG_SIZE]
        tag = envelope[-TAG_SIZE:]
        cipher = ChaCha20_Poly1305.new(key=self.key, nonce=nonce)
        try:
            return cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError:
            raise DecryptionError("decrypt failed (wrong key or corrupted data)")

    def encrypt_file(
            self,
            source: pathlib.Path,
            target: typing.Optional[pathlib.Path] = None) -> pathlib.Path:
        target = target or encrypted_path_for(source)
        log.debug(f"Encrypting {source} to {target}")
        write_atomic(target, self.seal(source.read_bytes()))
        return target

    def decrypt_file(
            self,
            source: pathlib.Path,
            target: typing.Optional[pathlib.Path] = None) -> pathlib.Path:
        target = target or decrypted_path_for(source)
        log.debug(f"Decrypting {source} to {target}")
        write_atomic(target, self.open(source.read_bytes()))
        return target

    def matches(self, plaintext: pathlib.Path, encrypted: pathlib.Path) -> bool:
        """Check if an existing artifact already holds a plaintext file's contents."""
        if not encrypted.exists():
            return False
        try:
            return self.open(encrypted.read_bytes()) == plaintext.read_bytes()
        except DecryptionError:
            return False


def encrypt_all(
        cipher: Cipher,
        paths: typing.Iterable[pathlib.Path],
        force: bool = False) -> typing.List[Transfer]:
    """Encrypt plaintext files to their artifacts, one failure at a time."""
    results = []
    for source in paths:
        if classify_name(source.name) != PLAINTEXT:
            continue
        target = encrypted_path_for(source)
        try:
            if not force and cipher.matches(source, target):
                log.info(f"Skipping {source} as {target} is up to date")
                results.append(Transfer(source, target, Outcome.UNCHANGED))
                continue
            cipher.encrypt_file(source, target)
        except FILE_ERRORS as error:
            log.warning(f"Could not encrypt {source}: {error}")
            results.append(Transfer(source, target, Outcome.FAILED, str(error)))
        else:
            results.append(Transfer(source, target, Outcome.ENCRYPTED))
    return results


def decrypt_all(
        cipher: Cipher,
        paths: typing.Iterable[pathlib.Path]) -> typing.List[Transfer]:
    """Decrypt artifacts, never overwriting a plaintext file that already exists."""
    results = []
    for source in paths:
        target = decrypted_path_for(source)
        if target.exists():
            log.warning(f"skip decrypt (target exists): {target}")
            results.append(Transfer(source, target, Outcome.SKIPPED))
            continue
        try:
            cipher.decrypt_file(source, target)
        except FILE_ERRORS as error:
            log.warning(f"could not decrypt {source} ({error})")
            results.append(Transfer(source, target, Outcome.FAILED, str(error)))
        else:
            results.append(Transfer(source, target, Outcome.DECRYPTED))
    return results


def try_key(cipher: Cipher, source: pathlib.Path) -> typing.Optional[Transfer]:
    """
    Check a candidate key against one artifact.

    When the plaintext is absent the artifact is restored straight into it.
    When it already exists the artifact is decrypted to a throwaway file
    instead, so that a wrong guess can never destroy data. Returns None if the
    key does not open the artifact.
    """
    target = decrypted_path_for(source)
    if not target.exists():
        try:
            cipher.decrypt_file(source, target)
        except FILE_ERRORS as error:
            log.debug(f"Candidate key failed on {source}: {error}")
            return None
        return Transfer(source, target, Outcome.DECRYPTED)

    scratch = temporary_path(target, tag='validate')
    try:
        cipher.decrypt_file(source, scratch)
    except FILE_ERRORS as error:
        log.debug(f"Candidate key failed on {source}: {error}")
        return None
    finally:
        scratch.unlink(missing_ok=True)
    return Transfer(source, target, Outcome.SKIPPED)


def bootstrap_key(
        root: pathlib.Path,
        paths: typing.Sequence[pathlib.Path],
        prompt: config.KeyPrompt = config.prompt_for_key,
        random_bytes: RandomBytes = get_random_bytes) -> typing.List[Transfer]:
    """
    Recover the project key from the operator when only artifacts exist.

    The key is accepted once it decrypts at least one artifact; only then is
    it written to the config file, and the config file protected by the ignore
    file. Nothing is persisted when no artifact decrypts.
    """
    if not paths:
        raise DecryptionError("no .env*.enc files found")

    key = config.ask_for_key(prompt, "eenv: enter the project key")
    cipher = Cipher.from_key_string(key, random_bytes=random_bytes)

    accepted = None
    for source in paths:
        accepted = try_key(cipher, source)
        if accepted is not None:
            break
    if accepted is None:
        raise DecryptionError("provided key did not decrypt any .env*.enc")

    config.write_config_with_key(root, key)
    gitignore.ensure_ignored(root, [config.CONFIG_FILENAME])

    remaining = [path for path in paths if path != accepted.source]
    results = {result.source: result for result in decrypt_all(cipher, remaining)}
    results[accepted.source] = accepted
    return [results[path] for path in paths]
