import logging
import os
import time
from typing import Any

import altair as alt
import pandas as pd
import streamlit as st

from keytrainer.feedback import LessonController
from keytrainer.models import Settings, Waveform
from keytrainer.piano import render_note
from keytrainer.scheduler import ManualScheduler
from keytrainer.storage import load_settings, save_settings
from keytrainer.pitch import NOTE_NAMES
from keytrainer.theory import are_enharmonic, clef_for, is_black_key
from keytrainer.trainer import accuracy_band, note_accuracy, ranked_by_accuracy

logging.basicConfig(level=os.environ.get("KEYTRAINER_LOG_LEVEL", "WARNING").upper())
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Key Trainer", page_icon=None, layout="centered")

# one button per physical key, sharp spelling submitted for black keys
KEYS = NOTE_NAMES
FLAT_NAMES = {"C#": "Db", "D#": "Eb", "F#": "Gb", "G#": "Ab", "A#": "Bb"}
BAND_COLORS = {"low": "#fee2e2", "mid": "#fef9c3", "high": "#dcfce7"}


def _now_ms() -> float:
	return time.monotonic() * 1000.0


def get_state() -> Any:
	if "settings" not in st.session_state:
		st.session_state.settings = load_settings()
	if "scheduler" not in st.session_state:
		st.session_state.scheduler = ManualScheduler(start_ms=_now_ms())
	if "pending_audio" not in st.session_state:
		st.session_state.pending_audio = None
	if "controller" not in st.session_state:
		st.session_state.controller = LessonController(
			st.session_state.scheduler,
			settings=st.session_state.settings,
			play_note=_queue_audio,
		)
	if "screen" not in st.session_state:
		st.session_state.screen = "main"
	return st.session_state


def _queue_audio(note_id: str) -> None:
	st.session_state.pending_audio = note_id


@st.cache_data(show_spinner=False, max_entries=128)
def _cached_note_bytes(note_id: str, waveform: str, volume: float) -> bytes:
	return render_note(note_id, waveform, volume)


def settings_panel(s: Settings) -> Settings:
	st.subheader("Octaves")
	cols = st.columns(9)
	picked = s
	for o in range(9):
		with cols[o]:
			checked = st.checkbox(str(o), value=o in s.selected_octaves, key=f"oct-{o}")
		if checked != (o in s.selected_octaves):
			picked = picked.toggle_octave(o)
	st.subheader("Options")
	include_accidentals = st.toggle("Sharps and flats", value=s.include_accidentals)
	reveal_answer = st.toggle("Show correct answer after a mistake", value=s.reveal_answer)
	audio_enabled = st.toggle("Sound", value=s.audio_enabled)
	waveforms = ["sine", "triangle", "saw", "piano"]
	waveform_str = st.selectbox("Instrument", waveforms, index=waveforms.index(s.waveform), disabled=not audio_enabled)
	volume = st.slider("Volume", min_value=0.0, max_value=1.0, value=s.volume, step=0.05, disabled=not audio_enabled)

	waveform: Waveform = waveform_str  # type: ignore[assignment]
	new_s = Settings(
		selected_octaves=picked.selected_octaves,
		include_accidentals=include_accidentals,
		audio_enabled=audio_enabled,
		reveal_answer=reveal_answer,
		waveform=waveform,
		volume=volume,
	)
	if new_s != s:
		save_settings(new_s)
	return new_s


def main_screen(state: Any) -> None:
	st.title("Piano Key Trainer")
	state.settings = settings_panel(state.settings)
	state.controller.update_settings(state.settings)
	if not state.settings.can_start:
		st.caption("Select at least one octave to start")
	if st.button("Start", use_container_width=True, disabled=not state.settings.can_start):
		state.controller.start_session()
		state.screen = "lesson"
		st.rerun()


def lesson_screen(state: Any) -> None:
	ctl: LessonController = state.controller
	note = ctl.current_note
	if note is None:
		state.screen = "main"
		st.rerun()

	st.markdown(f"## {note}")
	st.caption(f"{clef_for(note)} clef")

	fb = ctl.feedback_state
	if fb == "correct":
		st.success("Correct!")
	elif fb == "incorrect":
		st.error("Incorrect")
	elif fb == "show_answer":
		st.info(f"The answer was {ctl.correct_pitch_class}")

	if state.pending_audio is not None:
		bytes_ = _cached_note_bytes(state.pending_audio, state.settings.waveform, state.settings.volume)
		st.audio(bytes_, format="audio/wav", autoplay=True)
		state.pending_audio = None

	highlight = ctl.correct_pitch_class if fb == "show_answer" else None
	cols = st.columns(len(KEYS))
	for idx, pc in enumerate(KEYS):
		label = f"{pc}/{FLAT_NAMES[pc]}" if is_black_key(pc) else pc
		with cols[idx]:
			kind = "primary" if highlight is not None and are_enharmonic(pc, highlight) else "secondary"
			if st.button(label, key=f"key-{pc}", type=kind, disabled=fb != "none", use_container_width=True):
				ctl.submit_answer(pc)
				st.rerun()

	st.markdown("---")
	if st.button("End Session"):
		ctl.end_session()
		state.screen = "analytics"
		st.rerun()

	if ctl.feedback_state != "none":
		# let the scheduler catch up with the wall clock
		time.sleep(0.1)
		st.rerun()


def analytics_screen(state: Any) -> None:
	stats = state.controller.session_stats()
	st.title("Session Complete")
	st.metric("Overall accuracy", f"{round(stats.overall)}%")

	ranked = ranked_by_accuracy(stats.per_note)
	if not ranked:
		st.write("No notes were practiced in this session.")
	else:
		rows = []
		for note, st_n in ranked:
			acc = note_accuracy(st_n)
			rows.append({"note": note, "shown": st_n.shown, "correct": st_n.correct, "accuracy": round(acc), "band": accuracy_band(acc)})
		df = pd.DataFrame(rows)
		st.dataframe(df.drop(columns=["band"]), hide_index=True)
		chart = alt.Chart(df).mark_bar().encode(
			x=alt.X("note:N", sort=None),
			y=alt.Y("accuracy:Q", scale=alt.Scale(domain=[0, 100])),
			color=alt.Color("band:N", scale=alt.Scale(domain=list(BAND_COLORS), range=list(BAND_COLORS.values())), legend=None),
			tooltip=["note", "shown", "correct", "accuracy"],
		).properties(width=400, height=250)
		st.altair_chart(chart, use_container_width=True)

	if st.button("Back to start", use_container_width=True):
		state.screen = "main"
		st.rerun()


def main() -> None:
	state = get_state()
	state.scheduler.advance_to(_now_ms())
	if state.screen == "lesson":
		lesson_screen(state)
	elif state.screen == "analytics":
		analytics_screen(state)
	else:
		main_screen(state)


if __name__ == "__main__":
	main()
