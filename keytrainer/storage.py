from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from .models import Settings

logger = logging.getLogger(__name__)


def data_dir() -> Path:
	override = os.environ.get("KEYTRAINER_HOME")
	dir_ = Path(override) if override else Path.home() / ".keytrainer"
	dir_.mkdir(parents=True, exist_ok=True)
	return dir_


def _data_path() -> Path:
	return data_dir() / "settings.json"


def _load_raw() -> Dict[str, Any]:
	p = _data_path()
	if not p.exists():
		return {}
	try:
		data = json.loads(p.read_text())
	except (OSError, ValueError) as e:
		logger.warning("ignoring unreadable settings file %s: %s", p, e)
		return {}
	return data if isinstance(data, dict) else {}


def load_settings() -> Settings:
	"""Saved settings, or the defaults if nothing usable is on disk."""
	obj = _load_raw().get("settings", {})
	if not isinstance(obj, dict):
		return Settings()
	try:
		return Settings.model_validate(obj)
	except ValidationError as e:
		logger.warning("invalid saved settings, using defaults: %s", e)
		return Settings()


def save_settings(s: Settings) -> None:
	raw = _load_raw()
	raw["settings"] = s.model_dump()
	_data_path().write_text(json.dumps(raw, indent=2))
