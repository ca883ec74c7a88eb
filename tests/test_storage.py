import json

import pytest

from keytrainer import storage
from keytrainer.models import Settings


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
	monkeypatch.setenv("KEYTRAINER_HOME", tmp_path.as_posix())
	return tmp_path


def test_defaults_when_missing():
	assert storage.load_settings() == Settings()


def test_save_and_load(home):
	s = Settings(selected_octaves=[2, 5], include_accidentals=True, reveal_answer=True)
	storage.save_settings(s)
	assert json.loads((home / "settings.json").read_text())["settings"]["selected_octaves"] == [2, 5]
	assert storage.load_settings() == s


def test_malformed_file_falls_back(home):
	(home / "settings.json").write_text("{not json")
	assert storage.load_settings() == Settings()


def test_invalid_settings_fall_back(home):
	(home / "settings.json").write_text(json.dumps({"settings": {"selected_octaves": [12]}}))
	assert storage.load_settings() == Settings()
