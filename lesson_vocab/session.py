"""Study session: lesson selection, flashcard deck and quiz run.

A session is owned by one learner flow at a time. Pools are validated
before any state changes, so the flashcard and quiz states only ever see
a usable pool.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum

from lesson_vocab.errors import EmptyPoolError
from lesson_vocab.models import (
    AnswerDirection,
    FlashcardMode,
    GlossLanguage,
    QuizQuestion,
    VocabularyRecord,
)
from lesson_vocab.quiz_generator import (
    enabled_languages,
    generate,
    matching_option_indices,
    option_texts,
    prompt_text,
    render_meaning,
    shuffled,
)
from lesson_vocab.sources import ActiveRecordSource

_log = logging.getLogger("lesson_vocab.session")


class SessionState(str, Enum):
    IDLE = "idle"
    LESSON_SELECTED = "lesson_selected"
    LISTING = "listing"
    FLASHCARDING = "flashcarding"
    QUIZZING = "quizzing"
    RESULTS = "results"


class CardFace(str, Enum):
    FRONT = "front"
    BACK = "back"


class InvalidTransition(RuntimeError):
    pass


@dataclass
class FlashcardDeck:
    cards: list[VocabularyRecord]
    mode: FlashcardMode = FlashcardMode.CHINESE_MEANING
    cursor: int = 0
    face: CardFace = CardFace.FRONT

    @property
    def current(self) -> VocabularyRecord:
        return self.cards[self.cursor]

    def next(self) -> None:
        if self.cursor < len(self.cards) - 1:
            self.cursor += 1
        self.face = CardFace.FRONT

    def prev(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1
        self.face = CardFace.FRONT

    def flip(self) -> None:
        self.face = CardFace.BACK if self.face is CardFace.FRONT else CardFace.FRONT

    def shuffle(self, rng: random.Random | None = None) -> None:
        self.cards = shuffled(self.cards, rng)
        self.cursor = 0
        self.face = CardFace.FRONT


def card_sides(record: VocabularyRecord, mode: FlashcardMode, languages) -> tuple[str, str]:
    """(front, back) text for a flashcard."""
    meaning = render_meaning(record, languages)
    mode = FlashcardMode(mode)
    if mode is FlashcardMode.CHINESE_MEANING:
        back = "\n".join(t for t in (record.romanization, meaning) if t)
        return record.headword, back
    if mode is FlashcardMode.MEANING_CHINESE:
        back = "\n".join(t for t in (record.headword, record.romanization) if t)
        return meaning, back
    return record.romanization, record.headword


@dataclass
class QuizRun:
    pool: list[VocabularyRecord]
    mode: AnswerDirection
    languages: list[GlossLanguage]
    questions: list[QuizQuestion] = field(default_factory=list)
    index: int = 0
    score: int = 0
    answered: bool = False
    selected: int | None = None
    missed: list[VocabularyRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def finished(self) -> bool:
        return self.index >= self.total

    @property
    def current(self) -> QuizQuestion:
        return self.questions[self.index]

    def rebuild(self, order: list[VocabularyRecord], rng: random.Random | None = None) -> None:
        self.questions = generate(order, self.mode, self.languages, rng)
        self.index = 0
        self.score = 0
        self.answered = False
        self.selected = None
        self.missed = []


class StudySession:
    def __init__(
        self,
        languages=(GlossLanguage.ENGLISH,),
        rng: random.Random | None = None,
    ):
        self.state = SessionState.IDLE
        self.source: ActiveRecordSource | None = None
        self.languages = enabled_languages(languages)
        self.deck: FlashcardDeck | None = None
        self.quiz: QuizRun | None = None
        self._rng = rng

    # ── Lesson selection ─────────────────────────────────────────────────

    def select_lesson(self, source: ActiveRecordSource) -> None:
        self.source = source
        self.deck = None
        self.quiz = None
        self.state = SessionState.LESSON_SELECTED

    def set_languages(self, languages) -> None:
        self.languages = enabled_languages(languages)
        if self.quiz is not None:
            self.quiz.languages = self.languages

    def _require_lesson(self) -> None:
        if self.source is None:
            raise InvalidTransition("no lesson selected")

    def show_list(self, records: list[VocabularyRecord]) -> list[VocabularyRecord]:
        self._require_lesson()
        if not records:
            raise EmptyPoolError(f"lesson {self.source.label!r} has no records")
        self.state = SessionState.LISTING
        return records

    def exit(self) -> None:
        self.deck = None
        self.quiz = None
        self.state = SessionState.LESSON_SELECTED if self.source is not None else SessionState.IDLE

    # ── Flashcards ───────────────────────────────────────────────────────

    def start_flashcards(self, records: list[VocabularyRecord], mode=FlashcardMode.CHINESE_MEANING) -> None:
        self._require_lesson()
        if not records:
            raise EmptyPoolError(f"lesson {self.source.label!r} has no records")
        self.deck = FlashcardDeck(cards=list(records), mode=FlashcardMode(mode))
        self.quiz = None
        self.state = SessionState.FLASHCARDING

    def _require_deck(self) -> FlashcardDeck:
        if self.state is not SessionState.FLASHCARDING or self.deck is None:
            raise InvalidTransition(f"not in flashcards (state: {self.state.value})")
        return self.deck

    def next_card(self) -> None:
        self._require_deck().next()

    def prev_card(self) -> None:
        self._require_deck().prev()

    def flip_card(self) -> None:
        self._require_deck().flip()

    def shuffle_cards(self) -> None:
        self._require_deck().shuffle(self._rng)

    def current_card(self) -> dict:
        deck = self._require_deck()
        front, back = card_sides(deck.current, deck.mode, self.languages)
        return {
            "record": deck.current.to_dict(),
            "front": front,
            "back": back,
            "face": deck.face.value,
            "position": deck.cursor + 1,
            "total": len(deck.cards),
        }

    # ── Quiz ─────────────────────────────────────────────────────────────

    def start_quiz(
        self,
        records: list[VocabularyRecord],
        mode=AnswerDirection.CHINESE_MEANING,
        shuffle_questions: bool = False,
    ) -> None:
        self._require_lesson()
        run = QuizRun(pool=list(records), mode=AnswerDirection(mode), languages=self.languages)
        order = shuffled(run.pool, self._rng) if shuffle_questions else run.pool
        # Raises InsufficientPoolError before the session changes state.
        run.rebuild(order, self._rng)
        self.quiz = run
        self.deck = None
        self.state = SessionState.QUIZZING
        _log.info("Quiz started on %s: %d questions", self.source.label, run.total)

    def _require_quiz(self) -> QuizRun:
        if self.quiz is None or self.state not in (SessionState.QUIZZING, SessionState.RESULTS):
            raise InvalidTransition(f"no quiz running (state: {self.state.value})")
        return self.quiz

    def select(self, option_index: int) -> bool:
        """Answer the current question; returns whether the pick was right.

        A second selection on the same question changes nothing and returns
        the outcome of the first.
        """
        run = self._require_quiz()
        if self.state is not SessionState.QUIZZING:
            raise InvalidTransition("quiz is finished")
        question = run.current
        if not 0 <= option_index < len(question.options):
            raise IndexError(f"option {option_index} out of range 0..{len(question.options) - 1}")
        if run.answered:
            return question.options[run.selected] is question.correct
        run.answered = True
        run.selected = option_index
        correct = question.options[option_index] is question.correct
        if correct:
            run.score += 1
        else:
            run.missed.append(question.correct)
        return correct

    def advance(self) -> None:
        run = self._require_quiz()
        if self.state is not SessionState.QUIZZING:
            raise InvalidTransition("quiz is finished")
        if not run.answered:
            raise InvalidTransition("answer the current question first")
        run.index += 1
        run.answered = False
        run.selected = None
        if run.finished:
            self.state = SessionState.RESULTS
            _log.info("Quiz finished: %d/%d", run.score, run.total)

    def retry(self) -> None:
        run = self._require_quiz()
        run.rebuild(run.pool, self._rng)
        self.state = SessionState.QUIZZING

    def shuffle_quiz(self) -> None:
        run = self._require_quiz()
        run.rebuild(shuffled(run.pool, self._rng), self._rng)
        self.state = SessionState.QUIZZING

    def snapshot(self) -> dict:
        """Plain-dict view of the session for a renderer."""
        data: dict = {
            "state": self.state.value,
            "lesson": self.source.label if self.source is not None else None,
            "languages": [lang.value for lang in self.languages],
        }
        if self.state is SessionState.FLASHCARDING:
            data["card"] = self.current_card()
        run = self.quiz
        if run is not None:
            data["score"] = run.score
            data["total"] = run.total
            if self.state is SessionState.QUIZZING:
                q = run.current
                data["question"] = {
                    "position": run.index + 1,
                    "mode": q.mode.value,
                    "prompt": prompt_text(q, self.languages),
                    "options": option_texts(q, self.languages),
                    "answered": run.answered,
                    "selected": run.selected,
                    "correct_indices": matching_option_indices(q, self.languages) if run.answered else [],
                }
            else:
                data["accuracy"] = round(run.score / max(run.total, 1) * 100, 1)
                data["missed"] = [r.to_dict() for r in run.missed]
        return data
