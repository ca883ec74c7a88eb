import re
from typing import Iterable, List

from .models import Clef, ParsedNote


class InvalidFormat(ValueError):
	"""A note identifier does not look like ``C4``, ``C#4`` or ``Db4``."""


class InvalidPitchClass(ValueError):
	"""A pitch class is not one of the 17 known spellings."""


NOTE_RE = re.compile(r"^([A-G])(#|b)?([0-8])$")

# pitch class -> semitone position within the octave
KEY_POSITIONS = {
	"C": 0, "B#": 0,
	"C#": 1, "Db": 1,
	"D": 2,
	"D#": 3, "Eb": 3,
	"E": 4, "Fb": 4,
	"F": 5, "E#": 5,
	"F#": 6, "Gb": 6,
	"G": 7,
	"G#": 8, "Ab": 8,
	"A": 9,
	"A#": 10, "Bb": 10,
	"B": 11, "Cb": 11,
}

BLACK_KEY_POSITIONS = frozenset({1, 3, 6, 8, 10})

NATURALS = ["C", "D", "E", "F", "G", "A", "B"]
ACCIDENTAL_PAIRS = [("C#", "Db"), ("D#", "Eb"), ("F#", "Gb"), ("G#", "Ab"), ("A#", "Bb")]

_SYMBOL_TO_ACCIDENTAL = {"#": "sharp", "b": "flat", None: "natural"}
_ACCIDENTAL_TO_SYMBOL = {"sharp": "#", "flat": "b", "natural": ""}

A4_MIDI = 69
A4_FREQ = 440.0


def parse_note(note_id: str) -> ParsedNote:
	m = NOTE_RE.match(note_id)
	if m is None:
		raise InvalidFormat(f"Invalid note identifier: {note_id!r}")
	letter, symbol, octave = m.groups()
	return ParsedNote(letter=letter, accidental=_SYMBOL_TO_ACCIDENTAL[symbol], octave=int(octave))


def format_note(note: ParsedNote) -> str:
	return f"{note.letter}{_ACCIDENTAL_TO_SYMBOL[note.accidental]}{note.octave}"


def pitch_class(note_id: str) -> str:
	"""Strip the octave: ``"C#4" -> "C#"``."""
	note = parse_note(note_id)
	return f"{note.letter}{_ACCIDENTAL_TO_SYMBOL[note.accidental]}"


def key_position(pc: str) -> int:
	try:
		return KEY_POSITIONS[pc]
	except KeyError:
		raise InvalidPitchClass(f"Invalid pitch class: {pc!r}") from None


def are_enharmonic(a: str, b: str) -> bool:
	return key_position(a) == key_position(b)


def is_black_key(pc: str) -> bool:
	return key_position(pc) in BLACK_KEY_POSITIONS


def clef_for(note_id: str) -> Clef:
	return "treble" if parse_note(note_id).octave >= 4 else "bass"


def white_key_profile(letter: str) -> str:
	"""Outline of a white key: where the neighbouring black keys notch it.

	C, F -> ``type1`` (notch on the right), D, G, A -> ``type2`` (both sides),
	E, B -> ``type3`` (notch on the left).
	"""
	if letter in ("C", "F"):
		return "type1"
	if letter in ("D", "G", "A"):
		return "type2"
	if letter in ("E", "B"):
		return "type3"
	raise InvalidFormat(f"Unknown letter: {letter!r}")


def note_to_midi(note_id: str) -> int:
	note = parse_note(note_id)
	pc = f"{note.letter}{_ACCIDENTAL_TO_SYMBOL[note.accidental]}"
	# B#/Cb cross the octave boundary: B#3 sounds as C4, Cb4 as B3
	offset = 0
	if pc == "B#":
		offset = 12
	elif pc == "Cb":
		offset = -12
	return 12 * (note.octave + 1) + KEY_POSITIONS[pc] + offset


def midi_to_freq(m: int) -> float:
	return float(A4_FREQ * (2.0 ** ((m - A4_MIDI) / 12.0)))


def generate_note_set(octaves: Iterable[int], include_accidentals: bool) -> List[str]:
	"""Build the drill pool for the chosen octaves.

	Octave 0 only reaches down to A0, octave 8 only holds C8. Black keys are
	listed under both spellings, so ``C#4`` and ``Db4`` are separate targets.
	"""
	notes: List[str] = []
	for octave in octaves:
		if not 0 <= octave <= 8:
			raise ValueError(f"octave out of range: {octave}")
		if octave == 0:
			notes += ["A0", "B0"]
			if include_accidentals:
				notes.append("Bb0")
		elif octave == 8:
			notes.append("C8")
		else:
			notes += [f"{n}{octave}" for n in NATURALS]
			if include_accidentals:
				for sharp, flat in ACCIDENTAL_PAIRS:
					notes += [f"{sharp}{octave}", f"{flat}{octave}"]
	return notes
