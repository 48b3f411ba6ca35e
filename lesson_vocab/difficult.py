"""The learner's list of words marked as difficult.

Stored as a JSON list of record keys under one key of an injected
key-value store. Writes are fire-and-forget: there is no locking, and two
flows updating the list at once may lose one update.
"""
from __future__ import annotations

import json
import logging
from typing import Protocol

from lesson_vocab.models import VocabularyRecord
from lesson_vocab.sources import CustomSet

log = logging.getLogger("lesson_vocab.difficult")

STORE_KEY = "difficult_words"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class DifficultWords:
    def __init__(self, store: KeyValueStore, key: str = STORE_KEY):
        self.store = store
        self.key = key

    def keys(self) -> list[str]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            log.warning("Stored %s is not JSON, treating as empty", self.key)
            return []
        return [k for k in data if isinstance(k, str)] if isinstance(data, list) else []

    def _save(self, keys: list[str]) -> None:
        self.store.set(self.key, json.dumps(keys, ensure_ascii=False))

    def mark(self, record: VocabularyRecord) -> bool:
        """Add *record*; returns False if it was already on the list."""
        keys = self.keys()
        if record.key in keys:
            return False
        keys.append(record.key)
        self._save(keys)
        return True

    def remove(self, key: str) -> bool:
        keys = self.keys()
        if key not in keys:
            return False
        keys.remove(key)
        self._save(keys)
        return True

    def clear(self) -> None:
        self._save([])

    def resolve(self, records: list[VocabularyRecord]) -> tuple[list[VocabularyRecord], list[str]]:
        """Split stored keys into (records found in *records*, keys not found)."""
        by_key: dict[str, VocabularyRecord] = {}
        for r in records:
            by_key.setdefault(r.key, r)
        found, missing = [], []
        for k in self.keys():
            if k in by_key:
                found.append(by_key[k])
            else:
                missing.append(k)
        return found, missing

    def practice_set(self, records: list[VocabularyRecord]) -> CustomSet:
        found, _ = self.resolve(records)
        return CustomSet(records=tuple(found), name="difficult-words")
