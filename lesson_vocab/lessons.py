"""Group parsed records by lesson code."""
from __future__ import annotations

from lesson_vocab.models import VocabularyRecord

# Non-numeric segments sort after every numeric one.
_NON_NUMERIC = float("inf")


def lesson_sort_key(code: str) -> tuple[float, ...]:
    """Natural key for dash-segmented lesson codes ("3-2" < "10-1")."""
    key: list[float] = []
    for segment in code.strip().split("-"):
        try:
            key.append(int(segment))
        except ValueError:
            key.append(_NON_NUMERIC)
    return tuple(key)


def sort_lesson_codes(codes: list[str]) -> list[str]:
    return sorted(codes, key=lesson_sort_key)


class LessonIndex:
    """Read-only view of records grouped by lesson code."""

    def __init__(self, records: list[VocabularyRecord]):
        self._records = list(records)
        self._by_lesson: dict[str, list[VocabularyRecord]] = {}
        for record in self._records:
            code = record.lesson_code.strip()
            if not code:
                continue
            self._by_lesson.setdefault(code, []).append(record)
        self._codes = sort_lesson_codes(list(self._by_lesson))

    @classmethod
    def build(cls, records: list[VocabularyRecord]) -> LessonIndex:
        return cls(records)

    @property
    def records(self) -> list[VocabularyRecord]:
        return list(self._records)

    def lesson_codes(self) -> list[str]:
        return list(self._codes)

    def for_lesson(self, code: str) -> list[VocabularyRecord]:
        return list(self._by_lesson.get(code.strip(), []))

    def volumes(self) -> list[str]:
        seen: dict[str, None] = {}
        for record in self._records:
            if record.volume:
                seen.setdefault(record.volume, None)
        return list(seen)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip() in self._by_lesson

    def __len__(self) -> int:
        return len(self._codes)
