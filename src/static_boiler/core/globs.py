"""Glob matching with brace expansion, globstar and negation.

pathlib's glob understands neither "{a,b}" alternatives nor "!pattern"
exclusions, and watch callbacks need to match a single changed path against
a pattern without touching the filesystem. Patterns here always use "/" as
separator and are relative to a root directory.

Rules:
    - "**" matches any number of path segments (including none).
    - "*" and "?" never cross a "/".
    - "{a,b}" expands to alternatives (nesting supported).
    - Leading "!" excludes matches of earlier patterns.
    - Segments starting with "." only match when dot=True or the pattern
      segment itself starts with ".".
"""

import functools
import re
from collections.abc import Iterable, Sequence
from pathlib import Path

__all__ = [
    "expand_braces",
    "glob_files",
    "has_magic",
    "match_path",
    "split_patterns",
]

_MAGIC_RE = re.compile(r"[*?\[{]")
_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def has_magic(segment: str) -> bool:
    """Return True if the segment contains glob metacharacters."""
    return _MAGIC_RE.search(segment) is not None


def expand_braces(pattern: str) -> list[str]:
    """Expand "{a,b}" alternatives, innermost group first.

    >>> expand_braces("*.{html,json}")
    ['*.html', '*.json']

    """
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def _segment_regex(segment: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(segment):
        char = segment[i]
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = segment.find("]", i + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                body = segment[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        else:
            out.append(re.escape(char))
        i += 1
    return "".join(out)


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    segments = pattern.strip("/").split("/")
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else "(?:[^/]+/)*")
        else:
            parts.append(_segment_regex(segment) + ("" if last else "/"))
    return re.compile("".join(parts) + r"\Z")


def _dot_allowed(pattern: str, rel: str, dot: bool) -> bool:
    if dot:
        return True
    explicit = {seg for seg in pattern.split("/") if seg.startswith(".")}
    for segment in rel.split("/"):
        if segment.startswith(".") and segment not in explicit:
            return False
    return True


def split_patterns(patterns: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split patterns into (includes, excludes), expanding braces."""
    includes: list[str] = []
    excludes: list[str] = []
    for raw in patterns:
        target = excludes if raw.startswith("!") else includes
        target.extend(expand_braces(raw.lstrip("!")))
    return includes, excludes


def match_path(patterns: str | Sequence[str], rel_path: str, *, dot: bool = False) -> bool:
    """Check a root-relative POSIX path against glob patterns.

    Args:
        patterns: One pattern or a list (may contain "!" exclusions).
        rel_path: Path relative to the patterns' root, "/"-separated.
        dot: Let wildcards match dotfiles.

    Returns:
        True if an include pattern matches and no exclusion does.

    """
    if isinstance(patterns, str):
        patterns = [patterns]
    includes, excludes = split_patterns(patterns)
    rel = rel_path.strip("/")
    matched = any(
        _compile(p).match(rel) is not None and _dot_allowed(p, rel, dot) for p in includes
    )
    if not matched:
        return False
    return not any(_compile(p).match(rel) is not None for p in excludes)


def _static_prefix(pattern: str) -> str:
    prefix: list[str] = []
    for segment in pattern.strip("/").split("/")[:-1]:
        if has_magic(segment) or segment == "**":
            break
        prefix.append(segment)
    return "/".join(prefix)


def glob_files(root: Path, patterns: Sequence[str], *, dot: bool = False) -> list[Path]:
    """Find files under root matching glob patterns.

    Only the static prefix of each pattern is walked, so "styles/**/*.css"
    never scans images/.

    Args:
        root: Directory the patterns are relative to.
        patterns: Include patterns and "!" exclusions.
        dot: Let wildcards match dotfiles.

    Returns:
        Sorted, de-duplicated absolute file paths. Empty when root is absent.

    """
    if not root.is_dir():
        return []

    includes, _excludes = split_patterns(patterns)
    found: set[Path] = set()
    for pattern in includes:
        prefix = _static_prefix(pattern)
        base = root / prefix if prefix else root
        if not base.is_dir():
            continue
        for candidate in base.rglob("*"):
            if not candidate.is_file():
                continue
            rel = candidate.relative_to(root).as_posix()
            if match_path(patterns, rel, dot=dot):
                found.add(candidate)
    return sorted(found)
