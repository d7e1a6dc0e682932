import asyncio

from structlog.testing import capture_logs

from whack.session.timer import OneShotTimer


async def _noop() -> None:
    pass


class TestOneShotTimer:
    async def test_callback_fires_after_delay(self):
        timer = OneShotTimer("t")
        fired = asyncio.Event()

        async def on_fire():
            fired.set()

        timer.start(0.01, on_fire)
        assert timer.pending is True
        await asyncio.wait_for(fired.wait(), timeout=1.0)
        await asyncio.sleep(0)
        assert timer.pending is False

    async def test_cancel_prevents_callback(self):
        timer = OneShotTimer("t")
        calls = []

        async def on_fire():
            calls.append(1)

        timer.start(0.01, on_fire)
        timer.cancel()
        await asyncio.sleep(0.05)
        assert calls == []
        assert timer.pending is False

    async def test_cancel_when_idle_is_noop(self):
        timer = OneShotTimer("t")
        timer.cancel()
        timer.cancel()
        assert timer.pending is False

    async def test_restart_replaces_pending_callback(self):
        """Arming an armed timer leaves exactly one callback in flight."""
        timer = OneShotTimer("t")
        calls = []

        async def first():
            calls.append("first")

        async def second():
            calls.append("second")

        timer.start(0.01, first)
        timer.start(0.02, second)
        await asyncio.sleep(0.1)
        assert calls == ["second"]

    async def test_callback_can_rearm_itself(self):
        timer = OneShotTimer("t")
        calls = []

        async def on_fire():
            calls.append(timer.pending)
            if len(calls) < 3:
                timer.start(0.005, on_fire)

        timer.start(0.005, on_fire)
        await asyncio.sleep(0.2)
        # the handle is released before each callback runs
        assert calls == [False, False, False]

    async def test_callback_can_cancel_its_own_timer(self):
        timer = OneShotTimer("t")
        done = asyncio.Event()

        async def on_fire():
            timer.cancel()
            await asyncio.sleep(0)
            done.set()

        timer.start(0.005, on_fire)
        await asyncio.wait_for(done.wait(), timeout=1.0)

    async def test_callback_error_is_logged_not_raised(self):
        timer = OneShotTimer("broken")

        async def on_fire():
            raise RuntimeError("socket gone")

        with capture_logs() as logs:
            timer.start(0.005, on_fire)
            await asyncio.sleep(0.05)

        failures = [e for e in logs if e["event"] == "timer callback failed"]
        assert len(failures) == 1
        assert failures[0]["timer"] == "broken"
