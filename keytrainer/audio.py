import io
from typing import Optional, cast
import numpy as np
import numpy.typing as npt
import soundfile as sf

from .theory import midi_to_freq, note_to_midi

SR = 44100
NOTE_SECONDS = 0.5
# time constant of the exponential fade after a key is struck
NOTE_DECAY = 0.35
ATTACK_SECONDS = 0.005
RELEASE_SECONDS = 0.05


def _wave(freq: float, t: npt.NDArray[np.float32], waveform: str) -> npt.NDArray[np.float32]:
	phase = (freq * t).astype(np.float32)
	if waveform == "sine":
		return np.sin(2.0 * np.pi * phase).astype(np.float32)
	if waveform == "triangle":
		return (4.0 * np.abs(phase - np.floor(phase + 0.5)) - 1.0).astype(np.float32)
	return (2.0 * (phase - np.floor(phase + 0.5))).astype(np.float32)


def _envelope(n: int, decay: Optional[float]) -> npt.NDArray[np.float32]:
	env = np.ones(n, dtype=np.float32)
	if decay is not None:
		env *= np.exp(-np.arange(n, dtype=np.float32) / np.float32(SR * decay))
	attack = min(n, int(ATTACK_SECONDS * SR))
	release = min(n - attack, int(RELEASE_SECONDS * SR))
	if attack > 0:
		env[:attack] *= np.linspace(0.0, 1.0, attack, endpoint=False, dtype=np.float32)
	if release > 0:
		env[n - release:] *= np.linspace(1.0, 0.0, release, endpoint=False, dtype=np.float32)
	return env


def tone(freq: float, dur: float, waveform: str = "sine", decay: Optional[float] = None) -> npt.NDArray[np.float32]:
	"""One tone with a short attack and release.

	With ``decay`` set the level also falls off exponentially, which sounds
	closer to a struck key than a held organ tone.
	"""
	n = int(SR * dur)
	t = np.arange(n, dtype=np.float32) / np.float32(SR)
	y = _wave(freq, t, waveform) * _envelope(n, decay)
	return cast(npt.NDArray[np.float32], y.astype(np.float32))


def note_tone(note_id: str, dur: float = NOTE_SECONDS, waveform: str = "sine", volume: float = 1.0) -> npt.NDArray[np.float32]:
	x = tone(midi_to_freq(note_to_midi(note_id)), dur, waveform, decay=NOTE_DECAY)
	return (x * np.float32(volume)).astype(np.float32)


def wav_bytes(x: npt.NDArray[np.float32]) -> bytes:
	buf = io.BytesIO()
	sf.write(buf, x, SR, format="WAV")
	return buf.getvalue()
