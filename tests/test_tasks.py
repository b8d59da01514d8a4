"""Tests for epoch-stamped reasoning requests."""

import asyncio

import pytest

from castaway.tasks import RequestTracker


async def _answer(value, delay: float = 0.0):
    await asyncio.sleep(delay)
    return value


async def _boom():
    raise RuntimeError("provider down")


@pytest.mark.asyncio
async def test_completed_result_is_applied_in_same_epoch():
    tracker = RequestTracker()
    applied = []

    assert tracker.submit("goal:robinson", 1, _answer("eat"), on_complete=applied.append, on_error=applied.append)
    assert tracker.in_flight("goal:robinson")

    await tracker.wait_all()
    assert not tracker.in_flight("goal:robinson")
    assert applied == []

    assert tracker.apply_completed(1, on_stale=lambda key: None) == 1
    assert applied == ["eat"]


@pytest.mark.asyncio
async def test_stale_epoch_result_is_discarded():
    tracker = RequestTracker()
    applied, stale = [], []

    tracker.submit("trade:trade-1", 1, _answer("accept"), on_complete=applied.append, on_error=applied.append)
    await tracker.wait_all()

    assert tracker.apply_completed(2, on_stale=stale.append) == 0
    assert applied == []
    assert stale == ["trade:trade-1"]


@pytest.mark.asyncio
async def test_duplicate_key_is_refused():
    tracker = RequestTracker()
    first = _answer("first", delay=0.01)
    second = _answer("second")

    assert tracker.submit("goal:friday", 1, first, on_complete=lambda r: None, on_error=lambda e: None)
    assert not tracker.submit("goal:friday", 1, second, on_complete=lambda r: None, on_error=lambda e: None)
    assert second.cr_frame is None

    await tracker.wait_all()


@pytest.mark.asyncio
async def test_errors_are_routed_to_error_handler():
    tracker = RequestTracker()
    errors = []

    tracker.submit("invention:robinson", 1, _boom(), on_complete=lambda r: None, on_error=errors.append)
    await tracker.wait_all()
    tracker.apply_completed(1, on_stale=lambda key: None)

    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)


@pytest.mark.asyncio
async def test_cancelled_request_delivers_nothing():
    tracker = RequestTracker()
    applied = []

    tracker.submit("goal:robinson", 1, _answer("late", delay=10), on_complete=applied.append, on_error=applied.append)
    assert tracker.cancel("goal:robinson")
    await asyncio.sleep(0)
    await tracker.wait_all()

    assert not tracker.has_completed()
    assert tracker.apply_completed(1, on_stale=lambda key: None) == 0
    assert applied == []


@pytest.mark.asyncio
async def test_detached_requests_free_their_key_and_report_stale():
    tracker = RequestTracker()
    stale = []

    tracker.submit("goal:robinson", 1, _answer("old", delay=0.01), on_complete=stale.append, on_error=stale.append)
    tracker.detach_all()

    assert not tracker.in_flight("goal:robinson")
    assert tracker.submit("goal:robinson", 2, _answer("new"), on_complete=lambda r: None, on_error=lambda e: None)

    await tracker.wait_all()
    tracker.apply_completed(2, on_stale=stale.append)

    assert stale == ["goal:robinson"]
