"""Stylesheet post-processors run by the styles step before minification.

Each processor takes masked CSS text (comments and strings swapped for
placeholders, see mask_css) plus the source path for error reporting, and
returns new masked text. Processors only rewrite the declarations they
own; anything they do not recognise is passed through byte for byte.

Available processors, in their default order:
    autoprefixer  vendor-prefixed copies of properties that still need them
    lost          lost-column / lost-row / lost-center grid declarations
    rucksack      position shorthand, rgba(#hex, alpha)
    simple-vars   $name definitions and $name / $(name) references
"""

import logging
import re
from collections.abc import Callable, Mapping
from pathlib import Path

from static_boiler.core.config.models import StylesConfig
from static_boiler.core.exceptions import AssetInputError

logger = logging.getLogger(__name__)

Processor = Callable[[str, Path], str]

__all__ = [
    "Processor",
    "build_processors",
    "check_syntax",
    "mask_css",
    "process_css",
    "unmask_css",
]

# Properties still shipped prefixed by current browser baselines
PREFIXED_PROPERTIES: dict[str, tuple[str, ...]] = {
    "appearance": ("-webkit-", "-moz-"),
    "backdrop-filter": ("-webkit-",),
    "box-decoration-break": ("-webkit-",),
    "clip-path": ("-webkit-",),
    "hyphens": ("-webkit-", "-ms-"),
    "mask-image": ("-webkit-",),
    "tab-size": ("-moz-",),
    "text-size-adjust": ("-webkit-", "-moz-", "-ms-"),
    "user-select": ("-webkit-", "-moz-", "-ms-"),
}

_MASK_RE = re.compile(r"/\*.*?\*/|\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'", re.DOTALL)
_PLACEHOLDER_RE = re.compile(r"\x00(\d+)\x00")
_BLOCK_RE = re.compile(r"\{([^{}]*)\}")
_DECL_RE = re.compile(
    r"(?P<indent>[ \t]*)(?<![\w$-])(?P<prop>-?[A-Za-z][\w-]*)[ \t]*:[ \t]*"
    r"(?P<value>[^;{}]*?)[ \t]*(?P<end>;|(?=\}|\Z))"
)
_FRACTION_RE = re.compile(r"^\d+(?:\.\d+)?/\d+(?:\.\d+)?$")
_HEX_RGBA_RE = re.compile(
    r"rgba\(\s*#(?P<hex>[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\s*,\s*(?P<alpha>[^)]+?)\s*\)"
)
_VARS_RE = re.compile(
    r"(?P<def>\$(?P<dname>[\w-]+)[ \t]*:[ \t]*(?P<dvalue>[^;{}]+?)[ \t]*;[ \t]*\n?)"
    r"|\$\((?P<pname>[\w-]+)\)"
    r"|\$(?P<rname>[\w-]+)"
)


# =============================================================================
# Masking and validation
# =============================================================================


def mask_css(css: str) -> tuple[str, list[str]]:
    """Replace comments and string literals with placeholders.

    Returns:
        Tuple of (masked text, list of original snippets by index).

    """
    snippets: list[str] = []

    def _swap(match: re.Match[str]) -> str:
        snippets.append(match.group(0))
        return f"\x00{len(snippets) - 1}\x00"

    return _MASK_RE.sub(_swap, css), snippets


def unmask_css(masked: str, snippets: list[str]) -> str:
    """Restore placeholders produced by mask_css."""
    return _PLACEHOLDER_RE.sub(lambda m: snippets[int(m.group(1))], masked)


def check_syntax(css: str, path: Path) -> None:
    """Reject stylesheets with unbalanced braces or unterminated tokens.

    Raises:
        AssetInputError: With the 1-based line of the first problem.

    """
    depth = 0
    line = 1
    i = 0
    length = len(css)
    while i < length:
        char = css[i]
        if char == "\n":
            line += 1
        elif css.startswith("/*", i):
            end = css.find("*/", i + 2)
            if end == -1:
                raise AssetInputError(path, f"unterminated comment at line {line}")
            line += css.count("\n", i, end)
            i = end + 1
        elif char in "\"'":
            end = i + 1
            while end < length and css[end] != char:
                if css[end] == "\n":
                    raise AssetInputError(path, f"unterminated string at line {line}")
                end += 2 if css[end] == "\\" else 1
            if end >= length:
                raise AssetInputError(path, f"unterminated string at line {line}")
            i = end
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise AssetInputError(path, f"unexpected '}}' at line {line}")
        i += 1
    if depth:
        raise AssetInputError(path, f"{depth} unclosed block(s) at end of file")


def _map_blocks(masked: str, fn: Callable[[str], str]) -> str:
    """Apply fn to the body of every innermost {...} block."""
    return _BLOCK_RE.sub(lambda m: "{" + fn(m.group(1)) + "}", masked)


def _map_declarations(body: str, fn: Callable[[re.Match[str]], str | None]) -> str:
    """Rewrite declarations; fn returns None to keep a declaration as-is."""

    def _replace(match: re.Match[str]) -> str:
        replaced = fn(match)
        return match.group(0) if replaced is None else replaced

    return _DECL_RE.sub(_replace, body)


def _declarations(indent: str, pairs: list[tuple[str, str]]) -> str:
    return "".join(f"{indent}{prop}: {value};" for prop, value in pairs)


# =============================================================================
# Processors
# =============================================================================


def autoprefixer(masked: str, path: Path) -> str:
    """Insert vendor-prefixed copies before unprefixed declarations."""

    def _block(body: str) -> str:
        present = {m.group("prop").lower() for m in _DECL_RE.finditer(body)}

        def _decl(match: re.Match[str]) -> str | None:
            prop = match.group("prop").lower()
            prefixes = PREFIXED_PROPERTIES.get(prop)
            if not prefixes:
                return None
            missing = [p for p in prefixes if f"{p}{prop}" not in present]
            if not missing:
                return None
            indent = match.group("indent")
            value = match.group("value")
            extra = _declarations(indent, [(f"{p}{prop}", value) for p in missing])
            return extra + match.group(0)

        return _map_declarations(body, _decl)

    return _map_blocks(masked, _block)


def _lost_calc(fraction: str, gutter: str) -> str:
    if gutter in ("0", "0px"):
        return f"calc(99.9% * {fraction})"
    return f"calc(99.9% * {fraction} - ({gutter} - {gutter} * {fraction}))"


def make_lost(default_gutter: str) -> Processor:
    """Build the lost grid processor with a configured default gutter."""

    def lost(masked: str, path: Path) -> str:
        def _decl(match: re.Match[str]) -> str | None:
            prop = match.group("prop").lower()
            if prop not in ("lost-column", "lost-row", "lost-center"):
                return None
            value = match.group("value")
            args = value.split()
            if args and "$" in args[0]:
                # A variable fraction is only known after simple-vars runs
                return None
            indent = match.group("indent")
            if prop == "lost-center":
                if not args:
                    raise AssetInputError(path, "lost-center requires a max-width")
                pairs = [
                    ("max-width", args[0]),
                    ("margin-left", "auto"),
                    ("margin-right", "auto"),
                ]
                if len(args) > 1:
                    pairs += [("padding-left", args[1]), ("padding-right", args[1])]
                return _declarations(indent, pairs)

            if not args or not _FRACTION_RE.match(args[0]):
                raise AssetInputError(path, f"{prop} expects a fraction like 1/3, got {value!r}")
            fraction = args[0]
            gutter = args[-1] if len(args) > 1 and not args[-1].isdigit() else default_gutter
            if prop == "lost-column":
                pairs = [("width", _lost_calc(fraction, gutter))]
            else:
                pairs = [
                    ("width", "100%"),
                    ("height", _lost_calc(fraction, gutter)),
                    ("margin-bottom", gutter),
                ]
            return _declarations(indent, pairs)

        return _map_blocks(masked, lambda body: _map_declarations(body, _decl))

    return lost


def _box_sides(values: list[str]) -> tuple[str, str, str, str]:
    """Expand 1-4 CSS box values to (top, right, bottom, left)."""
    if len(values) == 1:
        return values[0], values[0], values[0], values[0]
    if len(values) == 2:
        return values[0], values[1], values[0], values[1]
    if len(values) == 3:
        return values[0], values[1], values[2], values[1]
    return values[0], values[1], values[2], values[3]


def _hex_to_rgb(hex_value: str) -> tuple[int, int, int]:
    if len(hex_value) == 3:
        hex_value = "".join(c * 2 for c in hex_value)
    return (
        int(hex_value[0:2], 16),
        int(hex_value[2:4], 16),
        int(hex_value[4:6], 16),
    )


def rucksack(masked: str, path: Path) -> str:
    """Expand position shorthand and rgba(#hex, alpha)."""

    def _decl(match: re.Match[str]) -> str | None:
        prop = match.group("prop").lower()
        value = match.group("value")
        indent = match.group("indent")
        if prop == "position":
            parts = value.split()
            if len(parts) > 5:
                raise AssetInputError(
                    path, f"position shorthand takes at most 4 offsets: {value!r}"
                )
            if len(parts) > 1:
                top, right, bottom, left = _box_sides(parts[1:])
                return _declarations(
                    indent,
                    [
                        ("position", parts[0]),
                        ("top", top),
                        ("right", right),
                        ("bottom", bottom),
                        ("left", left),
                    ],
                )
        if "rgba(" in value and "#" in value:

            def _rgba(m: re.Match[str]) -> str:
                r, g, b = _hex_to_rgb(m.group("hex"))
                return f"rgba({r},{g},{b},{m.group('alpha')})"

            new_value = _HEX_RGBA_RE.sub(_rgba, value)
            if new_value != value:
                return f"{indent}{match.group('prop')}: {new_value}{match.group('end')}"
        return None

    return _map_blocks(masked, lambda body: _map_declarations(body, _decl))


def make_simple_vars(predefined: Mapping[str, str]) -> Processor:
    """Build the simple-vars processor seeded with configured variables."""

    def simple_vars(masked: str, path: Path) -> str:
        variables = dict(predefined)

        def _lookup(name: str) -> str:
            if name not in variables:
                raise AssetInputError(path, f"undefined variable ${name}")
            return variables[name]

        def _resolve(text: str) -> str:
            return _VARS_RE.sub(
                lambda m: _lookup(m.group("pname") or m.group("rname") or m.group("dname")),
                text,
            )

        def _replace(match: re.Match[str]) -> str:
            if match.group("def"):
                variables[match.group("dname")] = _resolve(match.group("dvalue"))
                return ""
            return _lookup(match.group("pname") or match.group("rname"))

        return _VARS_RE.sub(_replace, masked)

    return simple_vars


def build_processors(config: StylesConfig) -> list[Processor]:
    """Instantiate the configured processors in order."""
    factories: dict[str, Callable[[], Processor]] = {
        "autoprefixer": lambda: autoprefixer,
        "lost": lambda: make_lost(config.gutter),
        "rucksack": lambda: rucksack,
        "simple-vars": lambda: make_simple_vars(config.variables),
    }
    return [factories[name]() for name in config.processors]


def process_css(css: str, path: Path, processors: list[Processor]) -> str:
    """Validate and run a stylesheet through the processor chain.

    Args:
        css: Source stylesheet.
        path: Source path, for error messages.
        processors: Chain from build_processors().

    Returns:
        Post-processed (not minified) stylesheet.

    Raises:
        AssetInputError: On syntax errors or processor failures.

    """
    check_syntax(css, path)
    masked, snippets = mask_css(css)
    for processor in processors:
        masked = processor(masked, path)
    return unmask_css(masked, snippets)
