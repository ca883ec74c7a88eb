"""Turn a stream of pitch estimates into discrete key presses.

The estimator (autocorrelation, McLeod, a neural model...) lives outside this
package. It hands ``NoteListener.feed`` one frame at a time: the estimated
frequency, the estimator's clarity in [0, 1] and the frame RMS. A pitch class
is emitted only after it has been stable for a few frames, and the same pitch
class is not repeated while it rings out.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, List, Literal, Optional

import numpy as np
import numpy.typing as npt

logger = logging.getLogger(__name__)

CLARITY_THRESHOLD = 0.9
CONSECUTIVE_FRAMES_REQUIRED = 3
COOLDOWN_MS = 300
CALIBRATION_MS = 1000
NOISE_FLOOR_MULTIPLIER = 3
NOISE_FLOOR_MIN = 0.005

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

ListenerState = Literal["idle", "calibrating", "listening"]


def frequency_to_pitch_class(hz: float) -> str:
	if hz <= 0:
		raise ValueError("frequency must be positive")
	midi = int(round(12 * math.log2(hz / 440.0) + 69))
	return NOTE_NAMES[midi % 12]


def rms(buffer: npt.ArrayLike) -> float:
	x = np.asarray(buffer, dtype=np.float32)
	if x.size == 0:
		return 0.0
	return float(np.sqrt(np.mean(x * x)))


class NoteListener:
	def __init__(self, on_note: Callable[[str], Any]) -> None:
		self.on_note = on_note
		self.state: ListenerState = "idle"
		self.noise_floor = 0.0
		self._calibration: List[float] = []
		self._calibration_start = 0.0
		self._stability: List[str] = []
		self._last_emitted: Optional[str] = None
		self._cooldown_until = 0.0
		self._suppress_until = 0.0

	def start(self, now_ms: float) -> None:
		self.stop()
		self.state = "calibrating"
		self._calibration_start = now_ms

	def stop(self) -> None:
		self.state = "idle"
		self.noise_floor = 0.0
		self._calibration = []
		self._stability = []
		self._last_emitted = None
		self._cooldown_until = 0.0
		self._suppress_until = 0.0

	def suppress(self, now_ms: float, duration_ms: float) -> None:
		"""Ignore input for a while, e.g. while the app itself plays a note."""
		self._suppress_until = now_ms + duration_ms

	def feed(self, now_ms: float, frequency: float, clarity: float, level: float) -> Optional[str]:
		"""Process one frame. Returns the pitch class if one was emitted."""
		if self.state == "calibrating":
			self._calibration.append(level)
			if now_ms - self._calibration_start >= CALIBRATION_MS:
				mean = sum(self._calibration) / len(self._calibration)
				self.noise_floor = max(mean * NOISE_FLOOR_MULTIPLIER, NOISE_FLOOR_MIN)
				self.state = "listening"
				logger.info("calibrated noise floor %.4f", self.noise_floor)
			return None
		if self.state != "listening":
			return None

		if now_ms < self._suppress_until or level < self.noise_floor or clarity < CLARITY_THRESHOLD or frequency <= 0:
			self._stability = []
			return None

		pc = frequency_to_pitch_class(frequency)
		self._stability.append(pc)
		if len(self._stability) > CONSECUTIVE_FRAMES_REQUIRED:
			self._stability.pop(0)
		if len(self._stability) < CONSECUTIVE_FRAMES_REQUIRED or any(p != pc for p in self._stability):
			return None

		self._stability = []
		if pc == self._last_emitted and now_ms < self._cooldown_until:
			return None
		self._last_emitted = pc
		self._cooldown_until = now_ms + COOLDOWN_MS
		logger.debug("detected %s (%.1f Hz)", pc, frequency)
		self.on_note(pc)
		return pc
