"""Cancelable one-shot timers.

The lesson controller never sleeps. It asks a scheduler to call it back
later and keeps the returned handle so the callback can be cancelled when
the session moves on. ``ManualScheduler`` keeps its own clock and only fires
timers when told to advance, which is what the tests and the Streamlit UI
use. ``AsyncioScheduler`` delegates to a running event loop.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Any, Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
	def __init__(self, due_ms: float, callback: Callable[[], Any], tag: Optional[str] = None) -> None:
		self.due_ms = due_ms
		self.callback = callback
		self.tag = tag
		self.cancelled = False
		self.fired = False

	@property
	def pending(self) -> bool:
		return not (self.cancelled or self.fired)

	def __repr__(self) -> str:
		state = "pending" if self.pending else ("fired" if self.fired else "cancelled")
		return f"TimerHandle(tag={self.tag!r}, due_ms={self.due_ms}, {state})"


class Scheduler(Protocol):
	def schedule_once(self, delay_ms: float, callback: Callable[[], Any], tag: Optional[str] = None) -> Any:
		...

	def cancel(self, handle: Any) -> None:
		...


class ManualScheduler:
	def __init__(self, start_ms: float = 0.0) -> None:
		self.now_ms = float(start_ms)
		self._queue: List[Tuple[float, int, TimerHandle]] = []
		self._seq = itertools.count()

	def schedule_once(self, delay_ms: float, callback: Callable[[], Any], tag: Optional[str] = None) -> TimerHandle:
		if delay_ms < 0:
			raise ValueError("delay_ms must be >= 0")
		handle = TimerHandle(self.now_ms + delay_ms, callback, tag)
		heapq.heappush(self._queue, (handle.due_ms, next(self._seq), handle))
		return handle

	def cancel(self, handle: TimerHandle) -> None:
		handle.cancelled = True

	def pending(self) -> List[TimerHandle]:
		return [h for _, _, h in sorted(self._queue) if h.pending]

	def advance(self, delta_ms: float) -> int:
		return self.advance_to(self.now_ms + delta_ms)

	def advance_to(self, t_ms: float) -> int:
		"""Move the clock to ``t_ms`` firing every timer due on the way.

		Timers scheduled by a callback are fired in the same call if they come
		due before ``t_ms``. Returns the number of callbacks run.
		"""
		fired = 0
		while self._queue and self._queue[0][0] <= t_ms:
			due, _, handle = heapq.heappop(self._queue)
			if not handle.pending:
				continue
			self.now_ms = max(self.now_ms, due)
			handle.fired = True
			logger.debug("firing timer %s at %.0fms", handle.tag, self.now_ms)
			handle.callback()
			fired += 1
		self.now_ms = max(self.now_ms, float(t_ms))
		return fired


class AsyncioScheduler:
	def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
		self.loop = loop or asyncio.get_running_loop()

	def schedule_once(self, delay_ms: float, callback: Callable[[], Any], tag: Optional[str] = None) -> asyncio.TimerHandle:
		return self.loop.call_later(delay_ms / 1000.0, callback)

	def cancel(self, handle: asyncio.TimerHandle) -> None:
		handle.cancel()
