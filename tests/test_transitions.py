"""Tests for the delayed transition scheduler (api/jobs/manager.py)."""

import asyncio

import pytest

from api.jobs import TransitionKind, TransitionScheduler, TransitionStatus


class TestTransitionScheduler:
    @pytest.mark.asyncio
    async def test_runs_callback_after_delay(self):
        scheduler = TransitionScheduler()
        fired = []

        async def callback():
            fired.append("d1")

        transition = scheduler.schedule("d1", TransitionKind.DATASET_PROCESSING, 0.01, callback)
        assert transition.status == TransitionStatus.PENDING
        assert fired == []

        await scheduler.drain()

        assert fired == ["d1"]
        assert transition.status == TransitionStatus.COMPLETED
        assert scheduler.get("d1") is None
        assert scheduler.history()[0] is transition

    @pytest.mark.asyncio
    async def test_rescheduling_replaces_pending_transition(self):
        scheduler = TransitionScheduler()
        fired = []

        async def first():
            fired.append("first")

        async def second():
            fired.append("second")

        old = scheduler.schedule("d1", TransitionKind.DATASET_PROCESSING, 0.01, first)
        scheduler.schedule("d1", TransitionKind.DATASET_PROCESSING, 0.01, second)
        await scheduler.drain()
        await asyncio.sleep(0)

        assert fired == ["second"]
        assert old.status == TransitionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel(self):
        scheduler = TransitionScheduler()
        fired = []

        async def callback():
            fired.append(True)

        scheduler.schedule("p1", TransitionKind.DEPLOYMENT, 0.01, callback)
        assert scheduler.cancel("p1") is True
        assert scheduler.cancel("p1") is False
        await asyncio.sleep(0.03)

        assert fired == []
        assert scheduler.pending() == []

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        scheduler = TransitionScheduler()

        async def callback():
            pass

        for entity_id in ("a", "b", "c"):
            scheduler.schedule(entity_id, TransitionKind.DEPLOYMENT, 1.0, callback)
        assert [t.entity_id for t in scheduler.pending()] == ["a", "b", "c"]

        assert scheduler.cancel_all() == 3
        assert scheduler.pending() == []

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self):
        scheduler = TransitionScheduler()

        async def callback():
            raise RuntimeError("store unavailable")

        transition = scheduler.schedule("p1", TransitionKind.DEPLOYMENT, 0, callback)
        await scheduler.drain()

        assert transition.status == TransitionStatus.FAILED
        assert transition.error == "store unavailable"
        assert transition.to_dict()["kind"] == "deployment"
        assert transition.is_finished
