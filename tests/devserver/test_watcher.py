"""Tests for the change dispatcher and watch bindings."""

import asyncio
import contextlib
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from static_boiler.core.exceptions import AssetInputError, TaskFailedError
from static_boiler.devserver.watcher import (
    ChangeDispatcher,
    WatchBinding,
    _ChangeHandler,
    default_bindings,
)
from static_boiler.orchestrator import TaskRunner, build_task_graph
from static_boiler.tasks.base import BuildContext

SOURCE = Path("/project/app")


def _dispatcher(runner: MagicMock | None = None, debounce: float = 0.0) -> ChangeDispatcher:
    if runner is None:
        runner = MagicMock()
        runner.run = AsyncMock(return_value=[])
    broadcaster = MagicMock()
    broadcaster.broadcast_event = AsyncMock(return_value=1)
    return ChangeDispatcher(runner, broadcaster, default_bindings(), SOURCE, debounce=debounce)


def _changed(*rel: str) -> list[Path]:
    return [SOURCE / r for r in rel]


class TestBindings:
    """Default bindings match the project layout."""

    @pytest.mark.parametrize(
        ("rel", "expected"),
        [
            ("index.html", "html"),
            ("blog/post.html", "html"),
            ("styles/main.css", "styles"),
            ("styles/partials/nav.css", "styles"),
            ("scripts/main.js", "scripts"),
            ("images/logo.png", "images"),
        ],
    )
    def test_binding_for_path(self, rel: str, expected: str) -> None:
        hits = [b.name for b in default_bindings() if b.matches(rel)]
        assert hits == [expected]

    def test_unwatched_path(self) -> None:
        assert not any(b.matches("manifest.json") for b in default_bindings())

    def test_styles_binding_injects(self) -> None:
        styles = next(b for b in default_bindings() if b.name == "styles")
        assert styles.tasks == ("styles",)
        assert styles.signal == "inject"


class TestMatch:
    """Batch matching."""

    def test_dedupes_in_declaration_order(self) -> None:
        dispatcher = _dispatcher()
        bindings, matched = dispatcher.match(
            _changed("scripts/a.js", "styles/b.css", "styles/a.css", "index.html")
        )
        assert [b.name for b in bindings] == ["html", "styles", "scripts"]
        assert matched == ["index.html", "scripts/a.js", "styles/a.css", "styles/b.css"]

    def test_paths_outside_source_are_ignored(self) -> None:
        dispatcher = _dispatcher()
        assert dispatcher.match([Path("/elsewhere/index.html")]) == ([], [])


class TestDispatch:
    """Rebuild and signal."""

    def test_stylesheet_batch_runs_styles_once_and_injects(self) -> None:
        dispatcher = _dispatcher()

        signal = asyncio.run(dispatcher.dispatch(_changed("styles/a.css", "styles/b.css")))

        assert signal == "inject"
        dispatcher.runner.run.assert_awaited_once_with("styles")
        dispatcher.broadcaster.broadcast_event.assert_awaited_once_with(
            "inject", ["/styles/a.css", "/styles/b.css"]
        )

    def test_html_change_reloads_without_tasks(self) -> None:
        dispatcher = _dispatcher()

        signal = asyncio.run(dispatcher.dispatch(_changed("index.html")))

        assert signal == "reload"
        dispatcher.runner.run.assert_not_awaited()
        dispatcher.broadcaster.broadcast_event.assert_awaited_once_with("reload")

    def test_script_change_rebuilds_then_reloads(self) -> None:
        dispatcher = _dispatcher()

        signal = asyncio.run(dispatcher.dispatch(_changed("scripts/main.js")))

        assert signal == "reload"
        dispatcher.runner.run.assert_awaited_once_with("scripts")

    def test_mixed_batch_reloads_once(self) -> None:
        dispatcher = _dispatcher()

        signal = asyncio.run(dispatcher.dispatch(_changed("styles/a.css", "index.html")))

        assert signal == "reload"
        dispatcher.runner.run.assert_awaited_once_with("styles")
        dispatcher.broadcaster.broadcast_event.assert_awaited_once_with("reload")

    def test_failure_sends_build_error(self) -> None:
        runner = MagicMock()
        error = TaskFailedError("styles", AssetInputError(Path("styles/a.css"), "bad"))
        runner.run = AsyncMock(side_effect=error)
        dispatcher = _dispatcher(runner)

        signal = asyncio.run(dispatcher.dispatch(_changed("styles/a.css", "scripts/main.js")))

        assert signal == "build-error"
        runner.run.assert_awaited_once_with("styles")
        event, payload = dispatcher.broadcaster.broadcast_event.await_args.args
        assert event == "build-error"
        assert payload["task"] == "styles"
        assert "bad" in payload["message"]

    def test_unmatched_batch_does_nothing(self) -> None:
        dispatcher = _dispatcher()

        assert asyncio.run(dispatcher.dispatch(_changed("manifest.json"))) is None
        dispatcher.broadcaster.broadcast_event.assert_not_awaited()

    def test_custom_binding(self) -> None:
        runner = MagicMock()
        runner.run = AsyncMock(return_value=[])
        broadcaster = MagicMock()
        broadcaster.broadcast_event = AsyncMock(return_value=0)
        binding = WatchBinding("docs", ("docs/**/*.md",), ("html", "copy"))
        dispatcher = ChangeDispatcher(runner, broadcaster, [binding], SOURCE)

        asyncio.run(dispatcher.dispatch(_changed("docs/readme.md")))

        assert [c.args for c in runner.run.await_args_list] == [("html",), ("copy",)]


class TestBatching:
    """Debounce and coalescing."""

    def test_duplicate_changes_collapse(self) -> None:
        async def scenario() -> set[Path]:
            dispatcher = _dispatcher()
            for rel in ("styles/a.css", "styles/a.css", "styles/b.css"):
                dispatcher.notify(SOURCE / rel)
            return await dispatcher.next_batch()

        assert asyncio.run(scenario()) == set(_changed("styles/a.css", "styles/b.css"))

    def test_changes_during_debounce_join_the_batch(self) -> None:
        async def scenario() -> tuple[set[Path], int]:
            dispatcher = _dispatcher(debounce=0.05)
            loop = asyncio.get_running_loop()
            dispatcher.notify(SOURCE / "styles/a.css")
            loop.call_later(0.01, dispatcher.notify, SOURCE / "index.html")
            batch = await dispatcher.next_batch()
            return batch, dispatcher._queue.qsize()

        batch, left = asyncio.run(scenario())
        assert batch == set(_changed("styles/a.css", "index.html"))
        assert left == 0

    def test_notify_threadsafe_without_loop_is_ignored(self) -> None:
        dispatcher = _dispatcher()
        dispatcher.notify_threadsafe(SOURCE / "index.html")
        assert dispatcher._queue.empty()


class TestChangeHandler:
    """watchdog events reach the dispatcher."""

    def test_file_event(self) -> None:
        dispatcher = MagicMock()
        _ChangeHandler(dispatcher).on_any_event(FileModifiedEvent("/project/app/index.html"))
        dispatcher.notify_threadsafe.assert_called_once_with(Path("/project/app/index.html"))

    def test_move_reports_both_paths(self) -> None:
        dispatcher = MagicMock()
        _ChangeHandler(dispatcher).on_any_event(
            FileMovedEvent("/project/app/styles/a.css~", "/project/app/styles/a.css")
        )
        notified = [c.args[0] for c in dispatcher.notify_threadsafe.call_args_list]
        assert notified == [
            Path("/project/app/styles/a.css~"),
            Path("/project/app/styles/a.css"),
        ]

    def test_directory_event_ignored(self) -> None:
        dispatcher = MagicMock()
        _ChangeHandler(dispatcher).on_any_event(DirModifiedEvent("/project/app/styles"))
        dispatcher.notify_threadsafe.assert_not_called()


def test_lifecycle(tmp_path: Path) -> None:
    """start() spins up the observer and dispatcher task; stop() tears both down."""

    async def scenario() -> None:
        runner = MagicMock()
        runner.run = AsyncMock(return_value=[])
        dispatcher = ChangeDispatcher(runner, MagicMock(), default_bindings(), tmp_path)
        await dispatcher.start()
        assert dispatcher._observer is not None
        assert dispatcher._task is not None and not dispatcher._task.done()
        await dispatcher.stop()
        assert dispatcher._observer is None
        assert dispatcher._task is None

    asyncio.run(scenario())


def test_stylesheet_edit_rebuilds_styles_once_and_injects_once(ctx: BuildContext) -> None:
    """Edits flow through the running loop into one styles run and one inject."""
    stylesheet = ctx.paths.source_styles / "a.css"
    stylesheet.write_text(".a { color: red; }\n")

    async def scenario() -> tuple[list[str], AsyncMock]:
        runner = TaskRunner(build_task_graph(), ctx)
        broadcaster = MagicMock()
        broadcaster.broadcast_event = AsyncMock(return_value=1)
        dispatcher = ChangeDispatcher.for_context(runner, broadcaster, ctx)
        loop_task = asyncio.create_task(dispatcher.run())

        stylesheet.write_text(".a { color: blue; }\n")
        dispatcher.notify(stylesheet)
        dispatcher.notify(stylesheet)
        for _ in range(500):
            if broadcaster.broadcast_event.await_count:
                break
            await asyncio.sleep(0.01)
        # Room for a second, unwanted rebuild to show up
        await asyncio.sleep(dispatcher.debounce * 2)

        loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop_task
        return [r.name for r in runner.records], broadcaster.broadcast_event

    names, broadcast = asyncio.run(scenario())

    assert names == ["styles"]
    broadcast.assert_awaited_once_with("inject", ["/styles/a.css"])
    assert (ctx.paths.tmp_styles / "a.css").read_text().startswith(".a{color:blue}")
    assert not (ctx.paths.tmp_scripts / "main.min.js").exists()
