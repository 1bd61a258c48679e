"""Tests for the live-reload SSE broadcaster."""

import asyncio

from static_boiler.devserver.sse import ReloadBroadcaster, format_sse


def test_format_sse() -> None:
    assert format_sse("reload", None) == "event: reload\ndata: null\n\n"
    assert (
        format_sse("inject", ["/styles/main.css"])
        == 'event: inject\ndata: ["/styles/main.css"]\n\n'
    )


class TestReloadBroadcaster:
    """Subscribe, broadcast, close."""

    def test_subscriber_receives_events(self) -> None:
        async def scenario() -> list[str]:
            broadcaster = ReloadBroadcaster()
            stream = broadcaster.subscribe()
            received = [await anext(stream)]
            assert broadcaster.client_count == 1

            reached = await broadcaster.broadcast_event("inject", ["/styles/main.css"])
            assert reached == 1
            received.append(await anext(stream))
            await broadcaster.broadcast_event("reload")
            received.append(await anext(stream))
            await stream.aclose()
            assert broadcaster.client_count == 0
            return received

        assert asyncio.run(scenario()) == [
            "retry: 1000\n\n",
            'event: inject\ndata: ["/styles/main.css"]\n\n',
            "event: reload\ndata: null\n\n",
        ]

    def test_every_client_gets_the_event(self) -> None:
        async def scenario() -> tuple[str, str]:
            broadcaster = ReloadBroadcaster()
            first, second = broadcaster.subscribe(), broadcaster.subscribe()
            await anext(first)
            await anext(second)
            assert await broadcaster.broadcast_event("reload") == 2
            result = (await anext(first), await anext(second))
            broadcaster.close()
            return result

        assert asyncio.run(scenario()) == ("event: reload\ndata: null\n\n",) * 2

    def test_no_clients(self) -> None:
        assert asyncio.run(ReloadBroadcaster().broadcast_event("reload")) == 0

    def test_heartbeat_on_silence(self) -> None:
        async def scenario() -> str:
            broadcaster = ReloadBroadcaster(heartbeat_interval=0.01)
            stream = broadcaster.subscribe()
            await anext(stream)
            message = await anext(stream)
            await stream.aclose()
            return message

        assert asyncio.run(scenario()) == ": heartbeat\n\n"

    def test_close_ends_streams(self) -> None:
        async def scenario() -> list[str]:
            broadcaster = ReloadBroadcaster()
            stream = broadcaster.subscribe()
            await anext(stream)
            await broadcaster.shutdown()
            rest = [message async for message in stream]
            assert broadcaster.client_count == 0
            return rest

        assert asyncio.run(scenario()) == []

    def test_slow_client_drops_events(self) -> None:
        async def scenario() -> tuple[int, int, list[str]]:
            broadcaster = ReloadBroadcaster(queue_size=1)
            stream = broadcaster.subscribe()
            await anext(stream)
            first = await broadcaster.broadcast_event("reload")
            second = await broadcaster.broadcast_event("inject", [])
            broadcaster.close()
            rest = [message async for message in stream]
            return first, second, rest

        first, second, rest = asyncio.run(scenario())
        assert (first, second) == (1, 0)
        # close() made room for the shutdown sentinel
        assert rest == []
