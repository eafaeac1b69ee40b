"""Placeholder scanning and expansion for user prompts.

Recognized forms, with an optional single space before the colon:

* ``@f:<path-expr>`` inline file contents (file, glob or directory)
* ``@d:<path-expr>`` inline a directory tree
* ``@t:L<n>`` max tokens level for the turn (removed from the sent text)
* ``@p:<float>`` temperature for the turn (removed from the sent text)
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .errors import PathResolutionError
from .paths import relative_label, render_tree, resolve_paths

PLACEHOLDER_RE = re.compile(r"(?<![\w@])@(?P<tag>[fdtp]) ?:(?P<arg>\S+)")
LEVEL_RE = re.compile(r"[Ll](\d+)")

MIN_LEVEL = 0
MAX_LEVEL = 5
BASE_TOKENS = 512
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


def level_to_tokens(level: int) -> int:
    """Map a token level (0-5) to a max tokens budget of ``512 * 2**level``."""
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise ValueError(f"token level must be between {MIN_LEVEL} and {MAX_LEVEL}, got {level}")
    return BASE_TOKENS * 2**level


@dataclass(frozen=True)
class Placeholder:
    """One placeholder occurrence found by :func:`scan`."""

    text: str
    arg: str
    start: int
    end: int


class FileInclude(Placeholder):
    """``@f:<path-expr>``"""


class DirTree(Placeholder):
    """``@d:<path-expr>``"""


class TokenLevel(Placeholder):
    """``@t:L<n>``"""


class Temperature(Placeholder):
    """``@p:<float>``"""


_VARIANTS: dict[str, type[Placeholder]] = {
    "f": FileInclude,
    "d": DirTree,
    "t": TokenLevel,
    "p": Temperature,
}


@dataclass(frozen=True)
class Overrides:
    level: int | None = None
    temperature: float | None = None

    def merge(self, later: Overrides) -> Overrides:
        """Return overrides where values set in ``later`` shadow this one."""
        return Overrides(
            level=later.level if later.level is not None else self.level,
            temperature=later.temperature if later.temperature is not None else self.temperature,
        )


@dataclass(frozen=True)
class ExpansionResult:
    text: str
    overrides: Overrides = field(default_factory=Overrides)
    warnings: tuple[str, ...] = ()
    included: tuple[str, ...] = ()


def scan(text: str) -> list[Placeholder]:
    """Find every placeholder in reading order."""
    return [
        _VARIANTS[match.group("tag")](match.group(0), match.group("arg"), match.start(), match.end())
        for match in PLACEHOLDER_RE.finditer(text)
    ]


def expand_placeholders(text: str, root: Path) -> ExpansionResult:
    """Expand placeholders in one user turn.

    Failed expansions leave the placeholder verbatim and add a warning; the
    remaining placeholders are still processed. Text without placeholders is
    returned as is.
    """

    placeholders = scan(text)
    if not placeholders:
        return ExpansionResult(text=text)

    pieces: list[str] = []
    warnings: list[str] = []
    included: list[str] = []
    overrides = Overrides()
    cursor = 0

    for placeholder in placeholders:
        replacement: str | None
        if isinstance(placeholder, FileInclude):
            replacement = _include_files(placeholder, root, warnings, included)
        elif isinstance(placeholder, DirTree):
            replacement = _include_tree(placeholder, root, warnings)
        elif isinstance(placeholder, TokenLevel):
            level = _parse_level(placeholder, warnings)
            replacement = None if level is None else ""
            if level is not None:
                overrides = overrides.merge(Overrides(level=level))
        else:
            temperature = _parse_temperature(placeholder, warnings)
            replacement = None if temperature is None else ""
            if temperature is not None:
                overrides = overrides.merge(Overrides(temperature=temperature))

        start = placeholder.start
        if replacement == "":
            while start > cursor and text[start - 1] in " \t":
                start -= 1
        pieces.append(text[cursor:start])
        pieces.append(placeholder.text if replacement is None else replacement)
        cursor = placeholder.end

    pieces.append(text[cursor:])
    for warning in warnings:
        logger.warning("placeholder.warning {}", warning)
    return ExpansionResult(
        text="".join(pieces),
        overrides=overrides,
        warnings=tuple(warnings),
        included=tuple(included),
    )


def file_block(label: str, content: str) -> str:
    return f"Contents of {label}:\n```\n{content.rstrip(chr(10))}\n```\n"


def file_request_lines(paths: Iterable[str]) -> str:
    """Render requested paths as ``@f:`` lines for the user prompt."""
    return "\n".join(f"@f:{path}" for path in paths)


def _include_files(
    placeholder: Placeholder, root: Path, warnings: list[str], included: list[str]
) -> str | None:
    try:
        paths = resolve_paths(placeholder.arg, root)
    except PathResolutionError as exc:
        warnings.append(f"{placeholder.text} left unexpanded: {exc!s}")
        return None

    blocks = read_file_blocks(paths, root, placeholder.text, warnings, included)
    if not blocks:
        warnings.append(f"{placeholder.text} left unexpanded: no readable files")
        return None
    return "\n".join(blocks)


def read_file_blocks(
    paths: Iterable[Path], root: Path, source: str, warnings: list[str], included: list[str]
) -> list[str]:
    """Render one ``Contents of`` block per readable file.

    Unreadable and non UTF-8 files are skipped with a warning naming ``source``.
    """

    blocks: list[str] = []
    for path in paths:
        label = relative_label(path, root.resolve())
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            warnings.append(f"{source}: skipped non UTF-8 file {label}")
            continue
        except OSError as exc:
            warnings.append(f"{source}: could not read {label}: {exc!s}")
            continue
        blocks.append(file_block(label, content))
        included.append(label)
    return blocks


def _include_tree(placeholder: Placeholder, root: Path, warnings: list[str]) -> str | None:
    try:
        return render_tree(placeholder.arg, root)
    except PathResolutionError as exc:
        warnings.append(f"{placeholder.text} left unexpanded: {exc!s}")
        return None


def _parse_level(placeholder: Placeholder, warnings: list[str]) -> int | None:
    match = LEVEL_RE.fullmatch(placeholder.arg)
    if match is None:
        warnings.append(f"{placeholder.text} left unexpanded: expected a token level L{MIN_LEVEL}-L{MAX_LEVEL}")
        return None
    level = int(match.group(1))
    if level > MAX_LEVEL:
        warnings.append(f"{placeholder.text}: token level L{level} clamped to L{MAX_LEVEL}")
        level = MAX_LEVEL
    return level


def _parse_temperature(placeholder: Placeholder, warnings: list[str]) -> float | None:
    try:
        value = float(placeholder.arg)
    except ValueError:
        warnings.append(f"{placeholder.text} left unexpanded: temperature must be a number")
        return None
    if not math.isfinite(value) or not MIN_TEMPERATURE <= value <= MAX_TEMPERATURE:
        warnings.append(
            f"{placeholder.text} left unexpanded: temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}"
        )
        return None
    return value
