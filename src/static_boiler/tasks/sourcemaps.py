"""Source map (revision 3) helpers for the styles and scripts steps.

Maps produced here are line-level: each generated line may carry one
segment at column 0 pointing at a (source, line) pair, and the original
sources are embedded so browser devtools show the authored file. Steps
that keep line structure (an untranspiled entry) map every line; minified
output maps the first line of each source's block to that source's start.
"""

import base64
import json
from collections.abc import Sequence
from typing import Any, Literal

SourceMap = dict[str, Any]

# Generated line -> (source index, source line), or None for an unmapped line
LineMapping = tuple[int, int] | None

__all__ = [
    "LineMapping",
    "SourceMap",
    "build_source_map",
    "decode_mappings",
    "dumps",
    "encode_line_mappings",
    "encode_vlq",
    "external_comment",
    "identity_lines",
    "inline_comment",
]

_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_BASE64_INDEX = {char: index for index, char in enumerate(_BASE64)}
_VLQ_SHIFT = 5
_VLQ_CONTINUATION = 1 << _VLQ_SHIFT
_VLQ_MASK = _VLQ_CONTINUATION - 1


def encode_vlq(value: int) -> str:
    """Encode one integer as base64 VLQ (sign in the lowest bit)."""
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & _VLQ_MASK
        vlq >>= _VLQ_SHIFT
        if vlq:
            digit |= _VLQ_CONTINUATION
        encoded += _BASE64[digit]
        if not vlq:
            return encoded


def _decode_vlq_segment(segment: str) -> list[int]:
    values: list[int] = []
    shift = vlq = 0
    for char in segment:
        digit = _BASE64_INDEX[char]
        vlq += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += _VLQ_SHIFT
            continue
        values.append(-(vlq >> 1) if vlq & 1 else vlq >> 1)
        shift = vlq = 0
    return values


def encode_line_mappings(lines: Sequence[LineMapping]) -> str:
    """Encode per-line mappings into a ``mappings`` string.

    Args:
        lines: One entry per generated line.

    Returns:
        Semicolon-separated VLQ segments, fields relative to the previous
        segment as the format requires.

    """
    encoded: list[str] = []
    prev_source = prev_line = 0
    for mapping in lines:
        if mapping is None:
            encoded.append("")
            continue
        source, line = mapping
        # Generated column and source column are always 0
        encoded.append(
            encode_vlq(0)
            + encode_vlq(source - prev_source)
            + encode_vlq(line - prev_line)
            + encode_vlq(0)
        )
        prev_source, prev_line = source, line
    return ";".join(encoded).rstrip(";")


def decode_mappings(mappings: str) -> list[list[tuple[int, int, int, int]]]:
    """Decode ``mappings`` into absolute segments per generated line.

    Returns:
        For each generated line, (column, source, source line, source column)
        tuples.

    """
    decoded: list[list[tuple[int, int, int, int]]] = []
    source = line = column = 0
    for group in mappings.split(";"):
        generated_column = 0
        segments: list[tuple[int, int, int, int]] = []
        for segment in filter(None, group.split(",")):
            fields = _decode_vlq_segment(segment)
            generated_column += fields[0]
            if len(fields) >= 4:
                source += fields[1]
                line += fields[2]
                column += fields[3]
                segments.append((generated_column, source, line, column))
        decoded.append(segments)
    return decoded


def identity_lines(source: int, count: int) -> list[LineMapping]:
    """Map generated line N to line N of one source."""
    return [(source, line) for line in range(count)]


def build_source_map(
    file: str,
    sources: list[tuple[str, str]],
    lines: Sequence[LineMapping] = (),
) -> SourceMap:
    """Create a source map for a generated file.

    Args:
        file: Generated file name the map describes.
        sources: (served path, original content) pairs, in output order.
        lines: Per generated line mapping, see encode_line_mappings.

    Returns:
        Source map dictionary.

    """
    return {
        "version": 3,
        "file": file,
        "sources": [name for name, _ in sources],
        "sourcesContent": [content for _, content in sources],
        "names": [],
        "mappings": encode_line_mappings(lines),
    }


def dumps(source_map: SourceMap) -> str:
    """Serialize a map deterministically."""
    return json.dumps(source_map, sort_keys=True, separators=(",", ":"))


def _comment(target: str, kind: Literal["css", "js"]) -> str:
    if kind == "css":
        return f"/*# sourceMappingURL={target} */"
    return f"//# sourceMappingURL={target}"


def inline_comment(source_map: SourceMap, kind: Literal["css", "js"]) -> str:
    """Build a sourceMappingURL comment embedding the map as a data URI."""
    encoded = base64.b64encode(dumps(source_map).encode("utf-8")).decode("ascii")
    return _comment(f"data:application/json;charset=utf8;base64,{encoded}", kind)


def external_comment(map_name: str, kind: Literal["css", "js"]) -> str:
    """Build a sourceMappingURL comment pointing at a sibling .map file."""
    return _comment(map_name, kind)
