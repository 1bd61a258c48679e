"""HTML step: marker-comment asset replacement and markup minification.

Marker blocks look like::

    <!-- build:css styles/main.min.css -->
    <link rel="stylesheet" href="styles/main.css">
    <!-- endbuild -->

Supported block types are ``css`` and ``js`` (replaced by one reference to
the target), ``remove`` (dropped) and ``inline`` (every referenced local
asset is inlined). An optional search path may follow the type in
parentheses, e.g. ``build:js({.tmp,app})``. Assets are resolved against
.tmp first, then app.

Minification runs htmlmin, bracketed by a few attribute passes htmlmin does
not offer (default type attributes, redundant and empty attributes) and a
final pass dropping optional end tags.
"""

import asyncio
import logging
import posixpath
import re
from collections.abc import Callable, Sequence
from pathlib import Path

import htmlmin

from static_boiler.core.exceptions import AssetInputError
from static_boiler.core.globs import expand_braces, glob_files
from static_boiler.core.io import format_size
from static_boiler.tasks.base import BuildContext, StepReport

logger = logging.getLogger(__name__)

HTML_PATTERNS = ["**/*.html"]

_BLOCK_RE = re.compile(
    r"(?P<indent>[ \t]*)<!--\s*build:(?P<type>\w+)(?:\((?P<alt>[^)]*)\))?"
    r"(?:\s+(?P<target>[^\s]+?))?\s*-->(?P<body>.*?)<!--\s*endbuild\s*-->",
    re.DOTALL,
)
_LINK_HREF_RE = re.compile(r"<link\b[^>]*?\bhref\s*=\s*[\"']?([^\"'\s>]+)", re.IGNORECASE)
_SCRIPT_SRC_RE = re.compile(
    r"<script\b[^>]*?\bsrc\s*=\s*[\"']?([^\"'\s>]+)[^>]*>\s*</script\s*>", re.IGNORECASE
)
_RAW_RE = re.compile(
    r"(<(script|style|pre|textarea)\b[^>]*>)(.*?)(</\2\s*>)", re.DOTALL | re.IGNORECASE
)
_TAG_RE = re.compile(r"<([a-zA-Z][\w-]*)((?:\s+[^<>]*?)?)(\s*/?)>")
_ATTR_RE = re.compile(r"""([^\s"'<>/=]+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s"'=<>`]+))?""")

DEFAULT_TYPES: dict[str, str] = {
    "script": "text/javascript",
    "style": "text/css",
    "link": "text/css",
}
EMPTY_REMOVABLE = {"class", "id", "style", "title", "lang", "dir"}
REDUNDANT_ATTRIBUTES = {
    ("form", "method", "get"),
    ("input", "type", "text"),
    ("area", "shape", "rect"),
}

# end tag -> what may follow it for the tag to be implied by the parser
OPTIONAL_END_TAGS: dict[str, str] = {
    "li": r"<li\b|</(?:ul|ol|menu)>",
    "dt": r"<d[td]\b|</dl>",
    "dd": r"<d[td]\b|</dl>",
    "option": r"<(?:option|optgroup)\b|</(?:select|optgroup|datalist)>",
    "td": r"<t[dh]\b|</tr>",
    "th": r"<t[dh]\b|</tr>",
    "tr": r"<tr\b|</(?:tbody|thead|tfoot|table)>",
    "thead": r"<t(?:body|foot)\b",
    "tbody": r"<t(?:body|foot)\b|</table>",
    "tfoot": r"</table>",
    "head": r"<body\b",
    "body": r"</html>|$",
    "html": r"$",
}
_OPTIONAL_END_RE = {
    tag: re.compile(rf"</{tag}>(?=\s*(?:{follow}))", re.IGNORECASE)
    for tag, follow in OPTIONAL_END_TAGS.items()
}


# =============================================================================
# Marker-comment replacement
# =============================================================================


def _is_local(url: str) -> bool:
    return not re.match(r"^(?:[a-z][a-z0-9+.-]*:|//)", url, re.IGNORECASE)


def _find_asset(url: str, page_dir: str, roots: Sequence[Path]) -> Path | None:
    clean = url.split("?", 1)[0].split("#", 1)[0]
    if clean.startswith("/"):
        rel = clean.lstrip("/")
    else:
        rel = posixpath.normpath(posixpath.join(page_dir, clean))
    for root in roots:
        candidate = root / rel
        if candidate.is_file():
            return candidate
    return None


def _inline_block(body: str, page: Path, page_dir: str, roots: Sequence[Path]) -> str:
    def _read(url: str) -> str:
        asset = _find_asset(url, page_dir, roots)
        if asset is None:
            raise AssetInputError(page, f"referenced asset not found: {url}")
        return asset.read_text(encoding="utf-8")

    def _style(match: re.Match[str]) -> str:
        href = _LINK_HREF_RE.search(match.group(0))
        if href is None or not _is_local(href.group(1)):
            return match.group(0)
        return f"<style>{_read(href.group(1))}</style>"

    def _script(match: re.Match[str]) -> str:
        url = match.group(1)
        if not _is_local(url):
            return match.group(0)
        return f"<script>{_read(url)}</script>"

    body = re.sub(r"<link\b[^>]*>", _style, body, flags=re.IGNORECASE)
    return _SCRIPT_SRC_RE.sub(_script, body).strip()


def replace_blocks(html: str, page: Path, page_dir: str, roots: Sequence[Path]) -> str:
    """Apply marker-comment blocks to one page.

    Args:
        html: Page source.
        page: Page path, for errors.
        page_dir: Page directory relative to the source tree ("" at root).
        roots: Default asset search roots, in priority order.

    Returns:
        The page with every block replaced; unchanged when it has none.

    Raises:
        AssetInputError: On unknown block types, a block without a target,
            or an inline reference missing from every search root.

    """

    def _replace(match: re.Match[str]) -> str:
        indent = match.group("indent")
        block_type = match.group("type")
        target = match.group("target")
        search = roots
        if match.group("alt"):
            base = page.parent
            search = [(base / alt).resolve() for alt in expand_braces(match.group("alt"))]

        if block_type == "remove":
            return ""
        if block_type == "inline":
            return indent + _inline_block(match.group("body"), page, page_dir, search)
        if not target:
            raise AssetInputError(page, f"build:{block_type} block has no target path")
        if block_type == "css":
            return f'{indent}<link rel="stylesheet" href="{target}">'
        if block_type == "js":
            return f'{indent}<script src="{target}"></script>'
        raise AssetInputError(page, f"unknown block type build:{block_type}")

    return _BLOCK_RE.sub(_replace, html)


# =============================================================================
# Minification
# =============================================================================


def _outside_raw(html: str, fn: Callable[[str], str]) -> str:
    """Apply fn to markup, leaving script/style/pre/textarea content alone."""
    parts: list[str] = []
    pos = 0
    for match in _RAW_RE.finditer(html):
        parts.append(fn(html[pos : match.start()] + match.group(1)))
        parts.append(match.group(3))
        parts.append(match.group(4))
        pos = match.end()
    parts.append(fn(html[pos:]))
    return "".join(parts)


def _unquote(value: str | None) -> str | None:
    if value is None:
        return None
    if value[:1] in ("'", '"'):
        return value[1:-1]
    return value


def _drop_attribute(tag: str, name: str, value: str | None, attrs: dict[str, str | None]) -> bool:
    stripped = (value or "").strip()
    lowered = stripped.lower()
    if name == "type" and DEFAULT_TYPES.get(tag) == lowered:
        return True
    if tag == "script" and name == "language":
        return True
    if tag == "script" and name == "charset" and "src" not in attrs:
        return True
    if (tag, name, lowered) in REDUNDANT_ATTRIBUTES:
        return True
    return value is not None and not stripped and (name in EMPTY_REMOVABLE or name.startswith("on"))


def clean_attributes(html: str) -> str:
    """Remove default, redundant and empty attributes from start tags."""

    def _tag(match: re.Match[str]) -> str:
        tag = match.group(1).lower()
        raw_attrs = match.group(2)
        if not raw_attrs.strip():
            return match.group(0)
        pairs = [(m.group(1).lower(), m.group(1), m.group(2)) for m in _ATTR_RE.finditer(raw_attrs)]
        attrs = {name: _unquote(value) for name, _, value in pairs}
        kept = [
            (original, value)
            for name, original, value in pairs
            if not _drop_attribute(tag, name, _unquote(value), attrs)
        ]
        if len(kept) == len(pairs):
            return match.group(0)
        rendered = "".join(f" {n}" if v is None else f" {n}={v}" for n, v in kept)
        return f"<{match.group(1)}{rendered}{match.group(3)}>"

    return _outside_raw(html, lambda text: _TAG_RE.sub(_tag, text))


def remove_optional_tags(html: str) -> str:
    """Drop end tags the HTML parser implies from what follows them."""

    def _strip(text: str) -> str:
        for pattern in _OPTIONAL_END_RE.values():
            text = pattern.sub("", text)
        return text

    return _outside_raw(html, _strip)


def minify_html(html: str) -> str:
    """Minify a page without changing what the browser builds from it."""
    html = clean_attributes(html)
    html = htmlmin.minify(
        html,
        remove_comments=True,
        remove_empty_space=True,
        reduce_boolean_attributes=True,
        remove_optional_attribute_quotes=True,
    )
    return remove_optional_tags(html)


def build_html(ctx: BuildContext) -> StepReport:
    """Process app/**/*.html into dist.

    Returns:
        StepReport for the html step.

    """
    paths = ctx.paths
    roots = [paths.tmp, paths.source]
    report = StepReport("html")

    for page in glob_files(paths.source, HTML_PATTERNS):
        rel = page.relative_to(paths.source)
        try:
            source = page.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise AssetInputError(page, f"not valid UTF-8: {e}") from e

        page_dir = rel.parent.as_posix()
        html = replace_blocks(source, page, "" if page_dir == "." else page_dir, roots)
        output = minify_html(html)
        report.emit(paths.dist / rel, output)
        logger.info("html %s %s", rel.as_posix(), format_size(len(output.encode("utf-8"))))
    return report


async def html(ctx: BuildContext) -> StepReport:
    """Task action for 'html'."""
    report = await asyncio.to_thread(build_html, ctx)
    report.log()
    return report
