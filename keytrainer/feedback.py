from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

from .models import FeedbackState, SessionStats, Settings
from .scheduler import Scheduler
from .theory import generate_note_set, pitch_class
from .trainer import SessionEngine

logger = logging.getLogger(__name__)

FLASH_MS = 800
FADE_MS = 200
SHOW_ANSWER_MS = 1000

FEEDBACK_MS = FLASH_MS + FADE_MS
FEEDBACK_WITH_ANSWER_MS = FEEDBACK_MS + SHOW_ANSWER_MS

# clicked keys carry no octave, so wrong answers are played around middle C
AUDIO_FEEDBACK_OCTAVE = 4


class LessonController:
	"""Runs the answer -> feedback -> next note loop on top of a SessionEngine.

	After an answer the engine sits in ``correct`` or ``incorrect`` and input is
	ignored until the scheduled advance fires. With ``reveal_answer`` on, a
	wrong answer goes through ``show_answer`` before advancing.
	"""

	def __init__(
		self,
		scheduler: Scheduler,
		settings: Optional[Settings] = None,
		engine: Optional[SessionEngine] = None,
		play_note: Optional[Callable[[str], Any]] = None,
	) -> None:
		self.scheduler = scheduler
		self.settings = settings or Settings()
		self.engine = engine or SessionEngine()
		self.play_note = play_note
		self.correct_pitch_class: Optional[str] = None
		self._timers: List[Any] = []

	@property
	def current_note(self) -> Optional[str]:
		return self.engine.current_note

	@property
	def feedback_state(self) -> FeedbackState:
		return self.engine.feedback_state

	@property
	def is_active(self) -> bool:
		return self.engine.is_active

	def update_settings(self, settings: Settings) -> None:
		self.settings = settings

	def start_session(self, note_set: Optional[Sequence[str]] = None) -> None:
		self._cancel_timers()
		self.correct_pitch_class = None
		if note_set is None:
			note_set = generate_note_set(self.settings.selected_octaves, self.settings.include_accidentals)
		self.engine.start(note_set)

	def end_session(self) -> None:
		self._cancel_timers()
		self.correct_pitch_class = None
		self.engine.end_lesson()

	def select_next(self) -> Optional[str]:
		"""Skip straight to a new note, dropping any feedback in flight."""
		self._cancel_timers()
		self.correct_pitch_class = None
		return self.engine.select_next()

	def session_stats(self) -> SessionStats:
		return self.engine.session_stats()

	def submit_answer(self, clicked_pc: str) -> Optional[bool]:
		"""Answer the current note. Returns None when input is not accepted."""
		note = self.engine.current_note
		if note is None or self.engine.feedback_state != "none":
			return None

		is_correct = self.engine.process_answer(clicked_pc)
		self.correct_pitch_class = pitch_class(note)

		if self.settings.audio_enabled:
			self._play(note if is_correct else f"{clicked_pc}{AUDIO_FEEDBACK_OCTAVE}")

		self._cancel_timers()
		selection = self.engine.selection_id
		if not is_correct and self.settings.reveal_answer:
			self._schedule(FEEDBACK_MS, lambda: self._show_answer(selection), "show_answer")
		else:
			self._schedule(FEEDBACK_MS, lambda: self._advance(selection), "advance")
		return is_correct

	def _show_answer(self, selection: int) -> None:
		if self._stale(selection):
			return
		self.engine.set_feedback_state("show_answer")
		self._schedule(SHOW_ANSWER_MS, lambda: self._advance(selection), "advance")

	def _advance(self, selection: int) -> None:
		if self._stale(selection):
			return
		self._timers = []
		self.correct_pitch_class = None
		self.engine.select_next()

	def _stale(self, selection: int) -> bool:
		if not self.engine.is_active or self.engine.selection_id != selection:
			logger.debug("dropping stale timer for selection %d", selection)
			return True
		return False

	def _schedule(self, delay_ms: float, callback: Callable[[], Any], tag: str) -> None:
		self._timers.append(self.scheduler.schedule_once(delay_ms, callback, tag))

	def _cancel_timers(self) -> None:
		for handle in self._timers:
			self.scheduler.cancel(handle)
		self._timers = []

	def _play(self, note_id: str) -> None:
		if self.play_note is None:
			return
		try:
			self.play_note(note_id)
		except Exception:
			logger.warning("audio playback failed for %s", note_id, exc_info=True)
