"""Tests for CaptureScheduler — interval ticks and the in-flight guard."""

import asyncio

from scheduler import CaptureScheduler


class TestGuard:
    def test_tick_while_processing_is_skipped(self):
        async def scenario():
            started = 0
            release = asyncio.Event()

            async def cycle():
                nonlocal started
                started += 1
                await release.wait()

            sched = CaptureScheduler(cycle, interval=10)
            first = sched.tick()
            await asyncio.sleep(0)
            assert sched.is_processing is True
            # Guard is set synchronously: even an immediate second tick is a no-op
            assert sched.tick() is None
            assert sched.tick() is None
            release.set()
            await first
            return started, sched.skipped_ticks, sched.is_processing

        started, skipped, processing = asyncio.run(scenario())
        assert started == 1
        assert skipped == 2
        assert processing is False

    def test_back_to_back_ticks_before_cycle_starts(self):
        async def scenario():
            calls = 0

            async def cycle():
                nonlocal calls
                calls += 1

            sched = CaptureScheduler(cycle, interval=10)
            sched.tick()
            sched.tick()  # first task has not run yet
            await sched.wait_idle()
            return calls

        assert asyncio.run(scenario()) == 1

    def test_next_tick_runs_after_completion(self):
        async def scenario():
            calls = 0

            async def cycle():
                nonlocal calls
                calls += 1

            sched = CaptureScheduler(cycle, interval=10)
            await sched.tick()
            await sched.tick()
            return calls

        assert asyncio.run(scenario()) == 2

    def test_crashing_cycle_does_not_wedge_guard(self):
        async def scenario():
            async def cycle():
                raise RuntimeError("boom")

            sched = CaptureScheduler(cycle, interval=10)
            await sched.tick()
            return sched.is_processing, sched.tick() is not None

        processing, restarted = asyncio.run(scenario())
        assert processing is False
        assert restarted is True


class TestTimer:
    def test_start_runs_cycles_on_interval(self):
        async def scenario():
            calls = 0

            async def cycle():
                nonlocal calls
                calls += 1

            sched = CaptureScheduler(cycle, interval=0.01)
            sched.start()
            assert sched.is_active is True
            await asyncio.sleep(0.1)
            sched.stop()
            await sched.wait_idle()
            return calls, sched.is_active

        calls, active = asyncio.run(scenario())
        assert calls >= 2
        assert active is False

    def test_slow_cycle_never_overlaps(self):
        async def scenario():
            running = 0
            max_running = 0

            async def cycle():
                nonlocal running, max_running
                running += 1
                max_running = max(max_running, running)
                await asyncio.sleep(0.05)
                running -= 1

            sched = CaptureScheduler(cycle, interval=0.01)
            sched.start()
            await asyncio.sleep(0.2)
            sched.stop()
            await sched.wait_idle()
            return max_running, sched.skipped_ticks

        max_running, skipped = asyncio.run(scenario())
        assert max_running == 1
        assert skipped > 0

    def test_stop_does_not_cancel_in_flight_cycle(self):
        async def scenario():
            finished = False

            async def cycle():
                nonlocal finished
                await asyncio.sleep(0.02)
                finished = True

            sched = CaptureScheduler(cycle, interval=10)
            sched.start()
            sched.tick()
            sched.stop()
            await sched.wait_idle()
            return finished

        assert asyncio.run(scenario()) is True

    def test_stop_calls_on_stop_once(self):
        async def scenario():
            stops = []

            async def cycle():
                pass

            sched = CaptureScheduler(cycle, interval=10, on_stop=lambda: stops.append(1))
            sched.start()
            sched.stop()
            sched.stop()
            return stops

        assert asyncio.run(scenario()) == [1]

    def test_start_twice_keeps_one_timer(self):
        async def scenario():
            async def cycle():
                pass

            sched = CaptureScheduler(cycle, interval=10)
            sched.start()
            timer = sched._timer
            sched.start()
            same = sched._timer is timer
            sched.stop()
            return same

        assert asyncio.run(scenario()) is True
