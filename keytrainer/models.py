from __future__ import annotations

from typing import List, Literal, Tuple

from pydantic import BaseModel, Field, field_validator


Accidental = Literal["sharp", "flat", "natural"]
Clef = Literal["treble", "bass"]
FeedbackState = Literal["none", "correct", "incorrect", "show_answer"]
Waveform = Literal["sine", "triangle", "saw", "piano"]


class Settings(BaseModel):
	selected_octaves: List[int] = Field(default=[4])
	include_accidentals: bool = Field(default=False)
	audio_enabled: bool = Field(default=True)
	reveal_answer: bool = Field(default=False)
	waveform: Waveform = Field(default="sine")
	volume: float = Field(default=0.9, ge=0.0, le=1.0)

	@field_validator("selected_octaves")
	@classmethod
	def _octaves_in_range(cls, v: List[int]) -> List[int]:
		for o in v:
			if not 0 <= o <= 8:
				raise ValueError(f"octave out of range: {o}")
		# keep first occurrence order, drop duplicates
		return list(dict.fromkeys(v))

	@property
	def can_start(self) -> bool:
		return len(self.selected_octaves) > 0

	def toggle_octave(self, octave: int) -> Settings:
		octaves = list(self.selected_octaves)
		if octave in octaves:
			octaves.remove(octave)
		else:
			octaves.append(octave)
		return Settings.model_validate({**self.model_dump(), "selected_octaves": sorted(octaves)})


class ParsedNote(BaseModel):
	letter: Literal["A", "B", "C", "D", "E", "F", "G"]
	accidental: Accidental = "natural"
	octave: int = Field(ge=0, le=8)


class NoteStats(BaseModel):
	shown: int = 0
	correct: int = 0


class SessionStats(BaseModel):
	overall: float
	per_note: List[Tuple[str, NoteStats]]
