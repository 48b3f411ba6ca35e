"""Where study records and raw book text come from."""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from lesson_vocab.config import Settings
from lesson_vocab.errors import SourceUnavailableError
from lesson_vocab.lessons import LessonIndex
from lesson_vocab.models import VocabularyRecord

log = logging.getLogger("lesson_vocab.sources")

_BOOK_ID = re.compile(r"^[A-Za-z0-9_.-]+$")
BOOK_SUFFIXES = (".csv", ".tsv")


# ── Active record source ─────────────────────────────────────────────────

@dataclass(frozen=True)
class LessonSource:
    code: str

    @property
    def label(self) -> str:
        return self.code

    def resolve(self, index: LessonIndex) -> list[VocabularyRecord]:
        return index.for_lesson(self.code)


@dataclass(frozen=True)
class CustomSet:
    """An explicit record list, e.g. the learner's difficult words."""

    records: tuple[VocabularyRecord, ...] = field(default_factory=tuple)
    name: str = "custom"

    @property
    def label(self) -> str:
        return self.name

    def resolve(self, index: LessonIndex | None = None) -> list[VocabularyRecord]:
        return list(self.records)


ActiveRecordSource = LessonSource | CustomSet


# ── Byte suppliers ───────────────────────────────────────────────────────

def check_book_id(book_id: str) -> str:
    if not _BOOK_ID.match(book_id) or book_id in (".", ".."):
        raise SourceUnavailableError(book_id, "invalid book id")
    return book_id


class ByteSupplier(ABC):
    @abstractmethod
    async def fetch_text(self, book_id: str) -> str:
        ...

    @abstractmethod
    def name(self) -> str:
        ...

    def list_books(self) -> list[str]:
        """Book ids this supplier can enumerate (may be empty)."""
        return []


class FileSupplier(ByteSupplier):
    """Reads ``<data_dir>/<book_id>.csv`` (or ``.tsv``)."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir

    def book_path(self, book_id: str) -> Path | None:
        check_book_id(book_id)
        for suffix in BOOK_SUFFIXES:
            p = self.data_dir / f"{book_id}{suffix}"
            if p.exists():
                return p
        return None

    def list_books(self) -> list[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted({p.stem for p in self.data_dir.iterdir() if p.suffix in BOOK_SUFFIXES})

    async def fetch_text(self, book_id: str) -> str:
        path = self.book_path(book_id)
        if path is None:
            raise SourceUnavailableError(book_id, f"no file in {self.data_dir}")
        try:
            return path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailableError(book_id, str(e)) from e

    def name(self) -> str:
        return f"file/{self.data_dir}"


class HttpSupplier(ByteSupplier):
    """GETs ``<base_url>/<book_id>.csv``."""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_text(self, book_id: str) -> str:
        check_book_id(book_id)
        url = f"{self.base_url}/{book_id}.csv"
        log.info("Fetching %s", url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content.decode("utf-8")
        except (httpx.HTTPError, UnicodeDecodeError) as e:
            log.warning("Fetch failed for %s: %s", url, e)
            raise SourceUnavailableError(book_id, str(e)) from e

    def name(self) -> str:
        return f"http/{self.base_url}"


def make_supplier(settings: Settings) -> ByteSupplier:
    if settings.source_url:
        return HttpSupplier(settings.source_url)
    return FileSupplier(settings.data_full_path)
