import asyncio

import pytest

from keytrainer.scheduler import AsyncioScheduler, ManualScheduler


def test_fires_in_due_order():
	sched = ManualScheduler()
	calls = []
	sched.schedule_once(200, lambda: calls.append("b"))
	sched.schedule_once(100, lambda: calls.append("a"))
	sched.schedule_once(200, lambda: calls.append("c"))
	assert sched.advance(199) == 1
	assert calls == ["a"]
	sched.advance(1)
	assert calls == ["a", "b", "c"]
	assert sched.now_ms == 200


def test_cancelled_timer_does_not_fire():
	sched = ManualScheduler()
	calls = []
	h = sched.schedule_once(10, lambda: calls.append(1), tag="x")
	sched.cancel(h)
	sched.advance(100)
	assert calls == []
	assert not h.pending and h.cancelled


def test_chained_timer_fires_within_same_advance():
	sched = ManualScheduler()
	calls = []

	def first():
		calls.append(sched.now_ms)
		sched.schedule_once(500, lambda: calls.append(sched.now_ms))

	sched.schedule_once(1000, first)
	sched.advance_to(1499)
	assert calls == [1000]
	sched.advance_to(2000)
	assert calls == [1000, 1500]


def test_negative_delay_rejected():
	with pytest.raises(ValueError):
		ManualScheduler().schedule_once(-1, lambda: None)


def test_asyncio_scheduler_fires_and_cancels():
	async def run():
		sched = AsyncioScheduler()
		calls = []
		sched.schedule_once(1, lambda: calls.append("fired"))
		h = sched.schedule_once(1, lambda: calls.append("cancelled"))
		sched.cancel(h)
		await asyncio.sleep(0.05)
		return calls

	assert asyncio.run(run()) == ["fired"]
