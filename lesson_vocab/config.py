from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from lesson_vocab.models import AnswerDirection, FlashcardMode, GlossLanguage

log = logging.getLogger("lesson_vocab.config")

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "data_dir": "data",
    "source_url": "",
    "db_path": "progress.db",
    "enabled_languages": ["english"],
    "quiz_mode": AnswerDirection.CHINESE_MEANING.value,
    "flashcard_mode": FlashcardMode.CHINESE_MEANING.value,
    "shuffle_questions": False,
}


@dataclass
class Settings:
    data_dir: str = DEFAULTS["data_dir"]
    source_url: str = DEFAULTS["source_url"]
    db_path: str = DEFAULTS["db_path"]
    enabled_languages: list[str] = field(default_factory=lambda: list(DEFAULTS["enabled_languages"]))
    quiz_mode: str = DEFAULTS["quiz_mode"]
    flashcard_mode: str = DEFAULTS["flashcard_mode"]
    shuffle_questions: bool = DEFAULTS["shuffle_questions"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def data_full_path(self) -> Path:
        return self.project_root / self.data_dir

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    @property
    def languages(self) -> list[GlossLanguage]:
        return [GlossLanguage(v) for v in self.enabled_languages]

    def to_dict(self) -> dict:
        return {
            "data_dir": self.data_dir,
            "source_url": self.source_url,
            "db_path": self.db_path,
            "enabled_languages": self.enabled_languages,
            "quiz_mode": self.quiz_mode,
            "flashcard_mode": self.flashcard_mode,
            "shuffle_questions": self.shuffle_questions,
        }


def _valid_values(enum_cls) -> set[str]:
    return {m.value for m in enum_cls}


def sanitize(raw: dict) -> dict:
    """Drop unknown keys and invalid language/mode values."""
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    filtered = {k: v for k, v in raw.items() if k in known}

    langs = filtered.get("enabled_languages")
    if langs is not None and not isinstance(langs, list):
        log.warning("Ignoring enabled_languages in config: expected a list, got %r", langs)
        del filtered["enabled_languages"]
    elif langs is not None:
        valid = _valid_values(GlossLanguage)
        bad = [v for v in langs if v not in valid]
        if bad:
            log.warning("Ignoring unknown languages in config: %s", bad)
        filtered["enabled_languages"] = [v for v in langs if v in valid]

    for key, enum_cls in (("quiz_mode", AnswerDirection), ("flashcard_mode", FlashcardMode)):
        if key in filtered and filtered[key] not in _valid_values(enum_cls):
            log.warning("Ignoring unknown %s in config: %r", key, filtered[key])
            del filtered[key]
    return filtered


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        return Settings(**sanitize(raw))
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
