"""Build multiple-choice quiz questions from a lesson's records.

Every record in the pool becomes one question. Distractors are drawn from
the same pool (minus the correct record) without replacement, so a pool of
fewer than four records gives questions with fewer than four options.

The text shown for an option and the text used to recognize the correct
option both come from ``render_answer``; nothing else formats answers.
"""
from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable

from lesson_vocab.errors import InsufficientPoolError
from lesson_vocab.models import (
    AnswerDirection,
    GlossLanguage,
    QuizQuestion,
    VocabularyRecord,
)

_log = logging.getLogger("lesson_vocab.quiz")

DISTRACTOR_COUNT = 3
MEANING_SEPARATOR = " | "

_rng = random.Random()


def enabled_languages(languages: Iterable[GlossLanguage | str]) -> list[GlossLanguage]:
    """Normalize *languages* into declaration order, dropping duplicates."""
    wanted = {GlossLanguage(lang) for lang in languages}
    return [lang for lang in GlossLanguage if lang in wanted]


def render_meaning(record: VocabularyRecord, languages: Iterable[GlossLanguage | str]) -> str:
    """Join the record's enabled, non-empty glosses in declaration order."""
    parts = [record.glosses[lang] for lang in enabled_languages(languages)]
    return MEANING_SEPARATOR.join(p for p in parts if p)


def _headword(record: VocabularyRecord, languages) -> str:
    return record.headword


def _romanization(record: VocabularyRecord, languages) -> str:
    return record.romanization


_Renderer = Callable[[VocabularyRecord, Iterable], str]

# mode -> (prompt side, answer side)
_HANDLERS: dict[AnswerDirection, tuple[_Renderer, _Renderer]] = {
    AnswerDirection.CHINESE_MEANING: (_headword, render_meaning),
    AnswerDirection.MEANING_CHINESE: (render_meaning, _headword),
    AnswerDirection.CHINESE_PINYIN: (_headword, _romanization),
    AnswerDirection.PINYIN_CHINESE: (_romanization, _headword),
}


def render_prompt(record: VocabularyRecord, mode: AnswerDirection, languages) -> str:
    return _HANDLERS[AnswerDirection(mode)][0](record, languages)


def render_answer(record: VocabularyRecord, mode: AnswerDirection, languages) -> str:
    return _HANDLERS[AnswerDirection(mode)][1](record, languages)


def prompt_text(question: QuizQuestion, languages) -> str:
    return render_prompt(question.correct, question.mode, languages)


def option_texts(question: QuizQuestion, languages) -> list[str]:
    return [render_answer(opt, question.mode, languages) for opt in question.options]


def is_correct_text(shown: str, question: QuizQuestion, languages) -> bool:
    """Does *shown* (an option's rendered text) name the correct answer?

    Meaning options may carry extra decoration around the joined glosses,
    so they match by containment; every other mode needs an exact match.
    """
    expected = render_answer(question.correct, question.mode, languages)
    if shown == expected:
        return True
    if question.mode is AnswerDirection.CHINESE_MEANING and expected:
        return expected in shown
    return False


def matching_option_indices(question: QuizQuestion, languages) -> list[int]:
    """Indices of options whose text reads as the correct answer."""
    return [
        i for i, text in enumerate(option_texts(question, languages))
        if is_correct_text(text, question, languages)
    ]


def shuffled(records: list[VocabularyRecord], rng: random.Random | None = None) -> list[VocabularyRecord]:
    out = list(records)
    (rng or _rng).shuffle(out)
    return out


def _pick_distractors(
    pool: list[VocabularyRecord],
    correct: VocabularyRecord,
    rng: random.Random,
) -> list[VocabularyRecord]:
    candidates = [r for r in pool if r is not correct]
    picked: list[VocabularyRecord] = []
    while len(picked) < DISTRACTOR_COUNT and candidates:
        picked.append(candidates.pop(rng.randrange(len(candidates))))
    return picked


def generate_question(
    pool: list[VocabularyRecord],
    correct: VocabularyRecord,
    mode: AnswerDirection,
    rng: random.Random | None = None,
) -> QuizQuestion:
    rng = rng or _rng
    distractors = _pick_distractors(pool, correct, rng)
    options = distractors + [correct]
    rng.shuffle(options)
    return QuizQuestion(
        correct=correct,
        distractors=distractors,
        mode=AnswerDirection(mode),
        options=options,
    )


def generate(
    pool: list[VocabularyRecord],
    mode: AnswerDirection,
    languages: Iterable[GlossLanguage | str] = (GlossLanguage.ENGLISH,),
    rng: random.Random | None = None,
) -> list[QuizQuestion]:
    """One question per pool record, in pool order.

    *languages* does not change which records are picked; it is validated
    here so a bad language fails at quiz start rather than at render time.
    """
    if len(pool) < 2:
        raise InsufficientPoolError(len(pool))
    enabled_languages(languages)
    mode = AnswerDirection(mode)
    questions = [generate_question(pool, record, mode, rng) for record in pool]
    _log.info("Generated %d %s questions", len(questions), mode.value)
    return questions
