from __future__ import annotations

import logging
import random
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence, Set, Tuple

from .models import FeedbackState, NoteStats, SessionStats
from .theory import are_enharmonic, pitch_class

logger = logging.getLogger(__name__)

# minimum gap before a note may come back
BUFFER_SIZE = 4


class SessionEngine:
	"""Note pool, error weights and statistics for one drill session.

	Selection draws from the notes not yet shown this cycle plus every missed
	note repeated once per miss, skipping anything in the recent buffer.
	"""

	def __init__(self, rand: Callable[[], float] = random.random) -> None:
		self.rand = rand
		self.is_active = False
		self.full_note_set: List[str] = []
		self.remaining_notes: Set[str] = set()
		self.error_weights: Dict[str, int] = {}
		self.recent_buffer: Deque[str] = deque(maxlen=BUFFER_SIZE)
		self.current_note: Optional[str] = None
		self.selection_id = 0
		self.stats: Dict[str, NoteStats] = {}
		self.feedback_state: FeedbackState = "none"

	def start(self, note_set: Sequence[str]) -> None:
		self.is_active = True
		self.full_note_set = list(note_set)
		self.remaining_notes = set(self.full_note_set)
		self.error_weights = {}
		self.recent_buffer = deque(maxlen=BUFFER_SIZE)
		self.current_note = None
		self.selection_id = 0
		self.stats = {}
		self.feedback_state = "none"
		logger.info("session started with %d notes", len(self.full_note_set))
		self.select_next()

	def candidates(self) -> List[str]:
		# walk full_note_set so the order does not depend on set hashing
		pool = [n for n in self.full_note_set if n in self.remaining_notes]
		for note, weight in self.error_weights.items():
			pool.extend([note] * weight)
		filtered = [n for n in pool if n not in self.recent_buffer and n != self.current_note]
		if not filtered:
			filtered = [n for n in self.full_note_set if n != self.current_note]
			if not filtered:
				filtered = list(self.full_note_set)
		return filtered

	def select_next(self) -> Optional[str]:
		if not self.is_active or not self.full_note_set:
			return None
		pool = self.candidates()
		idx = min(int(self.rand() * len(pool)), len(pool) - 1)
		self.current_note = pool[idx]
		self.feedback_state = "none"
		self.selection_id += 1
		logger.debug("selected %s from %d candidates", self.current_note, len(pool))
		return self.current_note

	def process_answer(self, clicked_pc: str) -> bool:
		note = self.current_note
		if note is None:
			return False
		displayed = pitch_class(note)
		is_correct = displayed == clicked_pc or are_enharmonic(displayed, clicked_pc)

		st = self.stats.setdefault(note, NoteStats())
		st.shown += 1
		if is_correct:
			st.correct += 1
		else:
			self.error_weights[note] = self.error_weights.get(note, 0) + 1

		self.remaining_notes.discard(note)
		if not self.remaining_notes:
			# cycle complete; weights and buffer carry over
			self.remaining_notes = set(self.full_note_set)
		self.recent_buffer.append(note)
		self.feedback_state = "correct" if is_correct else "incorrect"
		logger.debug("answer %s for %s: %s", clicked_pc, note, self.feedback_state)
		return is_correct

	def set_feedback_state(self, state: FeedbackState) -> None:
		self.feedback_state = state

	def end_lesson(self) -> None:
		self.is_active = False
		self.current_note = None
		self.feedback_state = "none"
		logger.info("session ended after %d answers", sum(s.shown for s in self.stats.values()))

	def session_stats(self) -> SessionStats:
		total_shown = 0
		total_correct = 0
		per_note: List[Tuple[str, NoteStats]] = []
		for note, st in self.stats.items():
			total_shown += st.shown
			total_correct += st.correct
			per_note.append((note, st.model_copy()))
		overall = (total_correct / total_shown) * 100.0 if total_shown else 0.0
		return SessionStats(overall=overall, per_note=per_note)


def note_accuracy(st: NoteStats) -> float:
	if st.shown == 0:
		return 0.0
	return (st.correct / st.shown) * 100.0


def ranked_by_accuracy(per_note: Sequence[Tuple[str, NoteStats]]) -> List[Tuple[str, NoteStats]]:
	"""Worst notes first, notes never shown left out."""
	shown = [(n, st) for n, st in per_note if st.shown > 0]
	return sorted(shown, key=lambda item: note_accuracy(item[1]))


def accuracy_band(accuracy: float) -> str:
	if accuracy <= 40:
		return "low"
	if accuracy <= 70:
		return "mid"
	return "high"
