from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class GlossLanguage(str, Enum):
    # Declaration order is the display order for joined meanings.
    ENGLISH = "english"
    VIETNAMESE = "vietnamese"
    THAI = "thai"
    BURMESE = "burmese"
    JAPANESE = "japanese"
    KOREAN = "korean"


class AnswerDirection(str, Enum):
    CHINESE_MEANING = "chinese-meaning"
    MEANING_CHINESE = "meaning-chinese"
    CHINESE_PINYIN = "chinese-pinyin"
    PINYIN_CHINESE = "pinyin-chinese"


class FlashcardMode(str, Enum):
    CHINESE_MEANING = "chinese-meaning"
    MEANING_CHINESE = "meaning-chinese"
    PINYIN_CHINESE = "pinyin-chinese"


def empty_glosses() -> dict[GlossLanguage, str]:
    return {lang: "" for lang in GlossLanguage}


@dataclass(frozen=True, eq=False)
class VocabularyRecord:
    """One vocabulary entry.

    Records compare by identity: two rows that happen to carry the same text
    are still different quiz answers.
    """

    lesson_code: str
    headword: str
    sequence: int = 0
    romanization: str = ""
    part_of_speech: str = ""
    glosses: Mapping[GlossLanguage, str] = field(default_factory=empty_glosses)
    volume: str = ""

    def __post_init__(self):
        full = empty_glosses()
        for lang, text in self.glosses.items():
            full[GlossLanguage(lang)] = text
        object.__setattr__(self, "glosses", MappingProxyType(full))

    @property
    def is_valid(self) -> bool:
        return bool(self.headword) and bool(self.lesson_code.strip())

    @property
    def key(self) -> str:
        return f"{self.headword}-{self.romanization}-{self.lesson_code}"

    def gloss(self, lang: GlossLanguage) -> str:
        return self.glosses[lang]

    def to_dict(self) -> dict:
        return {
            "lesson_code": self.lesson_code,
            "sequence": self.sequence,
            "headword": self.headword,
            "romanization": self.romanization,
            "part_of_speech": self.part_of_speech,
            "glosses": {lang.value: text for lang, text in self.glosses.items()},
            "volume": self.volume,
            "key": self.key,
        }


@dataclass
class QuizQuestion:
    correct: VocabularyRecord
    distractors: list[VocabularyRecord]
    mode: AnswerDirection
    options: list[VocabularyRecord]

    @property
    def correct_option_index(self) -> int:
        return next(i for i, opt in enumerate(self.options) if opt is self.correct)
