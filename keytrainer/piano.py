import io
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path

import mido
import requests
import soundfile as sf

from .audio import note_tone, wav_bytes
from .storage import data_dir
from .theory import note_to_midi

logger = logging.getLogger(__name__)

# FluidR3Mono_GM as SF3 (compressed SF2), ~14MB; FluidSynth reads it natively
DEFAULT_SF2_URL = "https://github.com/musescore/MuseScore/raw/2.3.2/share/sound/FluidR3Mono_GM.sf3"
DEFAULT_SF2_NAME = "FluidR3Mono_GM.sf3"

NOTE_SECONDS = 0.5
RENDER_SR = 44100


def sf2_path() -> Path:
	override = os.environ.get("KEYTRAINER_SF2_PATH")
	if override:
		return Path(override)
	return data_dir() / "sf2" / DEFAULT_SF2_NAME


def ensure_sf2() -> Path:
	p = sf2_path()
	if p.exists() or os.environ.get("KEYTRAINER_SF2_PATH"):
		return p
	p.parent.mkdir(parents=True, exist_ok=True)
	try:
		response = requests.get(DEFAULT_SF2_URL, timeout=30)
		response.raise_for_status()
		p.write_bytes(response.content)
	except requests.RequestException as e:
		logger.warning("soundfont download failed: %s", e)
	return p


def is_piano_available() -> bool:
	if shutil.which("fluidsynth") is None:
		return False
	return ensure_sf2().exists()


def write_note_midi(path: Path, note_id: str, volume: float) -> None:
	mid = mido.MidiFile()
	trk = mido.MidiTrack()
	mid.tracks.append(trk)
	# 120 BPM: one beat is 0.5s
	trk.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(120), time=0))
	trk.append(mido.Message("program_change", program=0, time=0))
	vel = max(1, min(127, int(60 + 60 * volume)))
	note = note_to_midi(note_id)
	trk.append(mido.Message("note_on", note=note, velocity=vel, time=0))
	trk.append(mido.Message("note_off", note=note, velocity=0, time=mid.ticks_per_beat))
	mid.save(path.as_posix())


def _trim(raw: bytes, seconds: float) -> bytes:
	data, _ = sf.read(io.BytesIO(raw), dtype="float32")
	if data.ndim == 2:
		data = data.mean(axis=1)
	data = data[: int(RENDER_SR * seconds)]
	buf = io.BytesIO()
	sf.write(buf, data, RENDER_SR, format="WAV")
	return buf.getvalue()


def render_note_bytes(note_id: str, volume: float) -> bytes:
	"""Render one piano note through FluidSynth as mono WAV bytes."""
	sf2 = ensure_sf2()
	if not sf2.exists():
		raise RuntimeError("Soundfont not available. Set KEYTRAINER_SF2_PATH to a valid .sf2/.sf3 file")
	if shutil.which("fluidsynth") is None:
		raise RuntimeError("fluidsynth not found on PATH")

	with tempfile.TemporaryDirectory() as td:
		midp = Path(td) / "note.mid"
		wavp = Path(td) / "note.wav"
		write_note_midi(midp, note_id, volume)
		cmd = [
			"fluidsynth",
			"-g", "1.2",
			"-R", "0",
			"-C", "0",
			"-r", str(RENDER_SR),
			"-F", wavp.as_posix(),
			sf2.as_posix(),
			midp.as_posix(),
		]
		proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
		if proc.returncode != 0 or not wavp.exists():
			raise RuntimeError(f"fluidsynth failed: {proc.stderr.decode(errors='ignore')}")
		return _trim(wavp.read_bytes(), NOTE_SECONDS + 0.3)


def render_note(note_id: str, waveform: str, volume: float) -> bytes:
	"""WAV bytes for one note; depends only on its arguments so it can be cached."""
	if waveform == "piano":
		if is_piano_available():
			try:
				return render_note_bytes(note_id, volume)
			except RuntimeError as e:
				logger.warning("piano render failed, falling back to sine: %s", e)
		waveform = "sine"
	return wav_bytes(note_tone(note_id, waveform=waveform, volume=volume))
