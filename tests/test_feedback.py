import copy

import pytest

from keytrainer.feedback import FEEDBACK_MS, SHOW_ANSWER_MS, LessonController
from keytrainer.models import Settings
from keytrainer.scheduler import ManualScheduler
from keytrainer.theory import InvalidPitchClass
from keytrainer.trainer import SessionEngine


def make_controller(reveal=False, audio=False, play_note=None, rand=lambda: 0.0):
	sched = ManualScheduler()
	settings = Settings(reveal_answer=reveal, audio_enabled=audio)
	ctl = LessonController(sched, settings=settings, engine=SessionEngine(rand=rand), play_note=play_note)
	return ctl, sched


def test_timing_constants():
	assert FEEDBACK_MS == 1000
	assert SHOW_ANSWER_MS == 1000


def test_start_session_generates_from_settings():
	ctl, _ = make_controller()
	ctl.update_settings(Settings(selected_octaves=[3], include_accidentals=True))
	ctl.start_session()
	assert len(ctl.engine.full_note_set) == 17
	assert ctl.current_note == "C3"


def test_correct_answer_advances_after_feedback():
	ctl, sched = make_controller()
	ctl.start_session(["C4", "D4", "E4"])
	assert ctl.submit_answer("C") is True
	assert ctl.feedback_state == "correct"
	sched.advance_to(999)
	assert ctl.feedback_state == "correct"
	assert ctl.current_note == "C4"
	sched.advance_to(1000)
	assert ctl.feedback_state == "none"
	assert ctl.current_note == "D4"
	assert ctl.correct_pitch_class is None


def test_incorrect_without_reveal_advances_after_feedback():
	ctl, sched = make_controller(reveal=False)
	ctl.start_session(["C4", "D4", "E4"])
	assert ctl.submit_answer("E") is False
	sched.advance_to(999)
	assert ctl.feedback_state == "incorrect"
	sched.advance_to(1000)
	assert ctl.feedback_state == "none"
	assert ctl.current_note != "C4"


def test_incorrect_with_reveal_shows_answer():
	ctl, sched = make_controller(reveal=True)
	ctl.start_session(["C4", "D4", "E4"])
	ctl.submit_answer("E")
	sched.advance_to(999)
	assert ctl.feedback_state == "incorrect"
	sched.advance_to(1000)
	assert ctl.feedback_state == "show_answer"
	assert ctl.correct_pitch_class == "C"
	assert ctl.current_note == "C4"
	sched.advance_to(1999)
	assert ctl.feedback_state == "show_answer"
	sched.advance_to(2000)
	assert ctl.feedback_state == "none"
	assert ctl.current_note in ("D4", "E4")


def test_input_gated_during_feedback():
	ctl, sched = make_controller()
	ctl.start_session(["C4", "D4", "E4"])
	ctl.submit_answer("D")
	before = copy.deepcopy(ctl.engine.__dict__)
	assert ctl.submit_answer("C") is None
	after = copy.deepcopy(ctl.engine.__dict__)
	before.pop("rand"), after.pop("rand")
	assert before == after
	assert len(sched.pending()) == 1


def test_submit_without_note_is_ignored():
	ctl, sched = make_controller()
	assert ctl.submit_answer("C") is None
	assert sched.pending() == []


def test_enharmonic_acceptance():
	ctl, _ = make_controller(reveal=True)
	ctl.start_session(["C#4"])
	assert ctl.submit_answer("Db") is True
	assert ctl.feedback_state == "correct"


def test_end_session_cancels_pending_timers():
	ctl, sched = make_controller(reveal=True)
	ctl.start_session(["C4", "D4", "E4"])
	ctl.submit_answer("E")
	ctl.end_session()
	assert sched.pending() == []
	sched.advance_to(5000)
	assert ctl.current_note is None
	assert ctl.feedback_state == "none"
	assert ctl.session_stats().per_note[0][0] == "C4"


def test_restart_drops_timers_of_previous_session():
	ctl, sched = make_controller(reveal=True)
	ctl.start_session(["C4", "D4", "E4"])
	ctl.submit_answer("E")
	ctl.start_session(["F4", "G4"])
	assert sched.pending() == []
	sched.advance_to(3000)
	assert ctl.current_note == "F4"
	assert ctl.feedback_state == "none"
	assert ctl.engine.stats == {}


def test_select_next_cancels_feedback():
	ctl, sched = make_controller()
	ctl.start_session(["C4", "D4", "E4"])
	ctl.submit_answer("C")
	ctl.select_next()
	selected = ctl.current_note
	sched.advance_to(1000)
	assert ctl.current_note == selected


def test_stale_timer_is_ignored():
	ctl, sched = make_controller()
	ctl.start_session(["C4", "D4", "E4"])
	ctl.submit_answer("C")
	# selection moved on without going through the controller
	ctl.engine.select_next()
	selected = ctl.current_note
	sched.advance_to(1000)
	assert ctl.current_note == selected


def test_audio_plays_displayed_or_clicked_note():
	played = []
	ctl, sched = make_controller(audio=True, play_note=played.append)
	ctl.start_session(["C4", "D4", "E4"])
	ctl.submit_answer("C")
	sched.advance(FEEDBACK_MS)
	ctl.submit_answer("F#")
	assert played == ["C4", "F#4"]


def test_audio_disabled_plays_nothing():
	played = []
	ctl, _ = make_controller(audio=False, play_note=played.append)
	ctl.start_session(["C4", "D4"])
	ctl.submit_answer("C")
	assert played == []


def test_audio_failure_does_not_affect_state():
	def boom(note_id):
		raise RuntimeError("no audio device")

	ctl, sched = make_controller(audio=True, play_note=boom)
	ctl.start_session(["C4", "D4"])
	assert ctl.submit_answer("C") is True
	assert ctl.feedback_state == "correct"
	sched.advance(FEEDBACK_MS)
	assert ctl.current_note == "D4"


def test_microphone_events_answer_like_clicks():
	from keytrainer.pitch import NoteListener

	ctl, _ = make_controller()
	ctl.start_session(["A4", "B4"])
	listener = NoteListener(ctl.submit_answer)
	listener.start(0)
	listener.feed(1000, 0.0, 0.0, 0.0)
	for t in (1010, 1020, 1030):
		listener.feed(t, 440.0, 0.95, 0.1)
	assert ctl.feedback_state == "correct"
	assert ctl.engine.stats["A4"].correct == 1


def test_unknown_spelling_leaves_controller_untouched():
	ctl, sched = make_controller()
	ctl.start_session(["C4", "D4"])
	with pytest.raises(InvalidPitchClass):
		ctl.submit_answer("H")
	assert ctl.correct_pitch_class is None
	assert ctl.feedback_state == "none"
	assert ctl.engine.stats == {}
	assert sched.pending() == []
