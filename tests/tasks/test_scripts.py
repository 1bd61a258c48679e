"""Tests for the scripts step and the transpiler wrapper."""

import base64
import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from static_boiler.core.config import load_config
from static_boiler.core.exceptions import AssetFileError, AssetInputError, TranspilerError
from static_boiler.tasks import transpile as transpile_module
from static_boiler.tasks.base import BuildContext
from static_boiler.tasks.scripts import compile_scripts, preserve_important_comments
from static_boiler.tasks.sourcemaps import decode_mappings
from static_boiler.tasks.transpile import transpile


@pytest.fixture
def esbuild_ctx(sample_project: Path) -> BuildContext:
    """Context with the transpiler enabled."""
    return BuildContext.from_project(sample_project, load_config())


class TestCompileScripts:
    """Bundle and per-entry outputs."""

    def test_bundle_outputs(self, ctx: BuildContext) -> None:
        compile_scripts(ctx)

        paths = ctx.paths
        bundle = (paths.dist_scripts / "main.min.js").read_text()
        assert bundle == (paths.tmp_scripts / "main.min.js").read_text()
        assert bundle.startswith("/*! sample-site v1 */")
        assert "greeting" in bundle
        assert "\n  " not in bundle
        assert bundle.rstrip().endswith("//# sourceMappingURL=main.min.js.map")

        source_map = json.loads((paths.dist_scripts / "main.min.js.map").read_text())
        assert source_map["file"] == "main.min.js"
        assert source_map["sources"] == ["main.js"]

    def test_tmp_entry_has_inline_map(self, ctx: BuildContext) -> None:
        compile_scripts(ctx)

        tmp_entry = (ctx.paths.tmp_scripts / "main.js").read_text()
        assert "console.log(greeting);" in tmp_entry
        marker = "//# sourceMappingURL=data:application/json;charset=utf8;base64,"
        assert marker in tmp_entry
        encoded = tmp_entry.split(marker, 1)[1].strip()
        inline_map = json.loads(base64.b64decode(encoded))
        assert inline_map["sources"] == ["main.js"]
        # Untranspiled entry: line N maps to line N
        line_count = len((ctx.paths.source_scripts / "main.js").read_text().splitlines())
        assert [seg[0][2] for seg in decode_mappings(inline_map["mappings"])] == list(
            range(line_count)
        )

    def test_rerun_is_skipped(self, ctx: BuildContext) -> None:
        compile_scripts(ctx)
        second = compile_scripts(ctx)
        assert second.skipped == 1
        assert second.written == []

    def test_entries_concatenated_in_order(self, sample_project: Path) -> None:
        (sample_project / "app" / "scripts" / "extra.js").write_text("var second = 2;\n")
        ctx = BuildContext.from_project(
            sample_project,
            load_config(
                {"scripts": {"transpiler": [], "entries": ["scripts/main.js", "scripts/extra.js"]}}
            ),
        )

        compile_scripts(ctx)

        bundle = (ctx.paths.dist_scripts / "main.min.js").read_text()
        assert bundle.index("greeting") < bundle.index("second")
        source_map = json.loads((ctx.paths.dist_scripts / "main.min.js.map").read_text())
        assert source_map["sources"] == ["main.js", "extra.js"]
        first_lines = {
            segments[0][1]: line
            for line, segments in enumerate(decode_mappings(source_map["mappings"]))
            if segments
        }
        assert bundle.splitlines()[first_lines[1]].startswith("var second")
        assert first_lines[0] == 0

    def test_missing_entry(self, ctx: BuildContext) -> None:
        (ctx.paths.source_scripts / "main.js").unlink()
        with pytest.raises(AssetFileError, match="Script entry not found"):
            compile_scripts(ctx)

    def test_transpiler_failure_names_the_entry(self, esbuild_ctx: BuildContext) -> None:
        failed = subprocess.CompletedProcess(
            args=["esbuild"], returncode=1, stdout="", stderr="Unexpected token"
        )
        with (
            patch.object(transpile_module.shutil, "which", return_value="/usr/bin/esbuild"),
            patch.object(transpile_module.subprocess, "run", return_value=failed),
            pytest.raises(AssetInputError, match="Unexpected token") as exc_info,
        ):
            compile_scripts(esbuild_ctx)

        assert exc_info.value.path.name == "main.js"
        assert not (esbuild_ctx.paths.dist_scripts / "main.min.js").exists()

    def test_default_transpiler_missing_fails_the_step(
        self, esbuild_ctx: BuildContext
    ) -> None:
        (esbuild_ctx.paths.source_scripts / "main.js").write_text("var = ;\nfunction (\n")
        with (
            patch.object(transpile_module.shutil, "which", return_value=None),
            pytest.raises(TranspilerError, match="esbuild"),
        ):
            compile_scripts(esbuild_ctx)

        assert not (esbuild_ctx.paths.dist_scripts / "main.min.js").exists()


class TestTranspile:
    """The external transpiler wrapper."""

    def test_disabled(self) -> None:
        assert transpile("let a = 1;", Path("a.js"), [], 5) == "let a = 1;"

    def test_missing_executable_fails(self) -> None:
        with (
            patch.object(transpile_module.shutil, "which", return_value=None),
            patch.object(transpile_module.subprocess, "run") as run,
            pytest.raises(TranspilerError, match="'no-such-tool' not found on PATH"),
        ):
            transpile("let a;", Path("a.js"), ["no-such-tool"], 5)

        run.assert_not_called()

    def test_success_uses_stdout(self) -> None:
        done = subprocess.CompletedProcess(args=[], returncode=0, stdout="var a;\n", stderr="")
        with (
            patch.object(transpile_module.shutil, "which", return_value="/bin/tool"),
            patch.object(transpile_module.subprocess, "run", return_value=done) as run,
        ):
            out = transpile("let a;", Path("a.js"), ["tool", "--flag"], 5)

        assert out == "var a;\n"
        assert run.call_args.args[0] == ["/bin/tool", "--flag"]
        assert run.call_args.kwargs["input"] == "let a;"

    def test_timeout(self) -> None:
        with (
            patch.object(transpile_module.shutil, "which", return_value="/bin/tool"),
            patch.object(
                transpile_module.subprocess,
                "run",
                side_effect=subprocess.TimeoutExpired(cmd="tool", timeout=5),
            ),
            pytest.raises(TranspilerError, match="timed out"),
        ):
            transpile("let a;", Path("a.js"), ["tool"], 5)


def test_preserve_important_comments() -> None:
    src = "/* @license MIT */\nvar a;\n/* plain */"
    out = preserve_important_comments(src)
    assert out.startswith("/*! @license MIT */")
    assert "/* plain */" in out
