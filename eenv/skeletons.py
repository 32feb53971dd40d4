"""
Skeletons are copies of environment files with every value removed, which
makes them safe to commit as examples.
"""

import enum
import logging
import pathlib
import typing

import attr

from .scan import EXAMPLE_SUFFIX
from .utils import write_atomic

log = logging.getLogger(__name__)


class ExampleAction(enum.Enum):
    CREATED = 'created'
    OVERWRITTEN = 'overwritten'
    SOURCE_IS_EXAMPLE = 'skip'
    FAILED = 'failed'


@attr.s(frozen=True)
class ExampleResult:
    source: pathlib.Path = attr.ib()
    target: pathlib.Path = attr.ib()
    action: ExampleAction = attr.ib()
    error: typing.Optional[str] = attr.ib(default=None)


def skeleton_line(line: str) -> str:
    stripped = line.strip()
    if not stripped:
        return ''
    if stripped.startswith('#'):
        return line
    if '=' in line:
        key, _ = line.split('=', 1)
        return f'{key.strip()}='
    return line


def skeleton_lines(text: str) -> typing.List[str]:
    """Split on line feeds only, dropping one carriage return from each line end."""
    lines = text.split('\n')
    if lines[-1] == '':
        lines.pop()
    return [skeleton_line(line[:-1] if line.endswith('\r') else line) for line in lines]


def extract_skeleton(path: pathlib.Path) -> typing.List[str]:
    # newline='' keeps a lone '\r' inside the value it belongs to
    with path.open(encoding='utf-8', newline='') as f:
        return skeleton_lines(f.read())


def example_path_for(path: pathlib.Path) -> pathlib.Path:
    if path.name.endswith(EXAMPLE_SUFFIX):
        return path
    return path.with_name(path.name + EXAMPLE_SUFFIX)


def write_skeleton(source: pathlib.Path, lines: typing.Sequence[str]) -> ExampleResult:
    target = example_path_for(source)
    if target == source:
        return ExampleResult(source, target, ExampleAction.SOURCE_IS_EXAMPLE)

    existed = target.exists()
    text = '\n'.join(lines)
    if not text.endswith('\n'):
        text += '\n'
    write_atomic(target, text)

    action = ExampleAction.OVERWRITTEN if existed else ExampleAction.CREATED
    log.debug(f"{action.value} {target} from {source}")
    return ExampleResult(source, target, action)


def generate_examples(paths: typing.Iterable[pathlib.Path]) -> typing.List[ExampleResult]:
    """Write a skeleton next to each file, reporting failures per file."""
    results = []
    for source in paths:
        target = example_path_for(source)
        if target == source:
            results.append(ExampleResult(source, target, ExampleAction.SOURCE_IS_EXAMPLE))
            continue
        try:
            results.append(write_skeleton(source, extract_skeleton(source)))
        except (OSError, UnicodeDecodeError) as error:
            log.warning(f"Could not write a skeleton for {source}: {error}")
            results.append(ExampleResult(
                source, target, ExampleAction.FAILED, str(error)))
    return results
