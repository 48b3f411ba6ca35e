"""Errors surfaced to callers of the parser, quiz generator and sources.

Row-level problems (ragged rows, missing headword or lesson code) are not
errors: the mapper drops those rows and logs them.
"""
from __future__ import annotations


class LessonVocabError(Exception):
    """Base class for every error this package raises on purpose."""


class EmptyInputError(LessonVocabError):
    """The source text has no header line plus at least one data line."""


class UnrecognizedSchemaError(LessonVocabError):
    """None of the header labels belongs to the known column vocabulary."""


class InsufficientPoolError(LessonVocabError):
    """A quiz needs at least two records so every question has a distractor."""

    def __init__(self, size: int):
        super().__init__(f"quiz needs at least 2 records, got {size}")
        self.size = size


class EmptyPoolError(LessonVocabError):
    """Flashcards (or a list view) were requested for a lesson with no records."""


class SourceUnavailableError(LessonVocabError):
    """The byte supplier could not produce text for a book."""

    def __init__(self, book_id: str, reason: str = ""):
        msg = f"could not load book {book_id!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.book_id = book_id
