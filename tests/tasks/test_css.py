"""Tests for the stylesheet post-processors."""

from pathlib import Path

import pytest

from static_boiler.core.config.models import StylesConfig
from static_boiler.core.exceptions import AssetInputError
from static_boiler.tasks.css import (
    build_processors,
    check_syntax,
    mask_css,
    process_css,
    unmask_css,
)

SRC = Path("styles/main.css")


def _run(css: str, **settings) -> str:
    return process_css(css, SRC, build_processors(StylesConfig(**settings)))


class TestMasking:
    """Comments and strings are hidden from processors."""

    def test_round_trip(self) -> None:
        css = 'a { content: "x: y;"; } /* $var: 1; */'
        masked, snippets = mask_css(css)
        assert "x: y" not in masked
        assert "$var" not in masked
        assert unmask_css(masked, snippets) == css

    def test_variables_inside_comments_are_ignored(self) -> None:
        out = _run("/* uses $missing */\na { color: red; }")
        assert "/* uses $missing */" in out


class TestCheckSyntax:
    """Malformed stylesheets are rejected with a location."""

    def test_unclosed_block(self) -> None:
        with pytest.raises(AssetInputError, match="unclosed block"):
            check_syntax("a { color: red;\n", SRC)

    def test_stray_closing_brace(self) -> None:
        with pytest.raises(AssetInputError, match="line 2"):
            check_syntax("a {}\n}\n", SRC)

    def test_unterminated_comment(self) -> None:
        with pytest.raises(AssetInputError, match="unterminated comment"):
            check_syntax("a {} /* open", SRC)

    def test_unterminated_string(self) -> None:
        with pytest.raises(AssetInputError, match="unterminated string"):
            check_syntax('a { content: "open; }\n', SRC)

    def test_error_carries_path(self) -> None:
        with pytest.raises(AssetInputError) as exc_info:
            check_syntax("}", SRC)
        assert exc_info.value.path == SRC


class TestAutoprefixer:
    """Vendor prefixes for properties that need them."""

    def test_adds_prefixes(self) -> None:
        out = _run("a { user-select: none; }", processors=["autoprefixer"])
        assert "-webkit-user-select: none;" in out
        assert "-moz-user-select: none;" in out
        assert out.index("-webkit-user-select") < out.index(" user-select")

    def test_existing_prefix_not_duplicated(self) -> None:
        out = _run(
            "a { -webkit-appearance: none; appearance: none; }",
            processors=["autoprefixer"],
        )
        assert out.count("-webkit-appearance") == 1
        assert "-moz-appearance: none;" in out

    def test_unknown_property_untouched(self) -> None:
        css = "a { color: red; }"
        assert _run(css, processors=["autoprefixer"]) == css


class TestLost:
    """Grid declarations expand to widths."""

    def test_column_with_default_gutter(self) -> None:
        out = _run("a { lost-column: 1/3; }", processors=["lost"])
        assert "width: calc(99.9% * 1/3 - (30px - 30px * 1/3));" in out
        assert "lost-column" not in out

    def test_column_without_gutter(self) -> None:
        out = _run("a { lost-column: 1/2 0px; }", processors=["lost"])
        assert "width: calc(99.9% * 1/2);" in out

    def test_center(self) -> None:
        out = _run("a { lost-center: 980px 20px; }", processors=["lost"])
        assert "max-width: 980px;" in out
        assert "margin-left: auto;" in out
        assert "padding-right: 20px;" in out

    def test_variable_gutter_resolved_after_expansion(self) -> None:
        out = _run("$g: 20px;\n.a { lost-column: 1/2 $g; }\n.b { lost-row: 1/3 $g; }\n")
        assert "width: calc(99.9% * 1/2 - (20px - 20px * 1/2));" in out
        assert "height: calc(99.9% * 1/3 - (20px - 20px * 1/3));" in out
        assert "margin-bottom: 20px;" in out
        assert "lost-" not in out
        assert "$" not in out

    def test_bad_fraction(self) -> None:
        with pytest.raises(AssetInputError, match="expects a fraction"):
            _run("a { lost-column: third; }", processors=["lost"])


class TestRucksack:
    """Shorthand expansion and hex alpha colours."""

    def test_position_shorthand(self) -> None:
        out = _run("a { position: absolute 0 10px; }", processors=["rucksack"])
        for decl in (
            "position: absolute;",
            "top: 0;",
            "right: 10px;",
            "bottom: 0;",
            "left: 10px;",
        ):
            assert decl in out

    def test_plain_position_untouched(self) -> None:
        css = "a { position: relative; }"
        assert _run(css, processors=["rucksack"]) == css

    def test_hex_rgba(self) -> None:
        out = _run("a { color: rgba(#fff, .5); }", processors=["rucksack"])
        assert "rgba(255,255,255,.5)" in out


class TestSimpleVars:
    """$name definitions and references."""

    def test_definition_and_reference(self) -> None:
        out = _run("$brand: #333;\na { color: $brand; border-color: $(brand); }")
        assert "$" not in out
        assert "color: #333;" in out
        assert "border-color: #333;" in out

    def test_configured_variables(self) -> None:
        out = _run("a { color: $accent; }", variables={"accent": "teal"})
        assert "color: teal;" in out

    def test_undefined_variable(self) -> None:
        with pytest.raises(AssetInputError, match=r"undefined variable \$nope"):
            _run("a { color: $nope; }")


def test_processor_order_follows_config() -> None:
    """Disabled processors leave their syntax alone."""
    out = _run("a { lost-column: 1/3; }", processors=["autoprefixer"])
    assert "lost-column: 1/3;" in out
