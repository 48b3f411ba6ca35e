"""Shared test fixtures."""
from __future__ import annotations

import random

import pytest

from lesson_vocab.db import Database
from lesson_vocab.models import GlossLanguage, VocabularyRecord


def make_record(headword: str, english: str = "", lesson: str = "1-1", seq: int = 0, **extra) -> VocabularyRecord:
    glosses = {GlossLanguage.ENGLISH: english}
    glosses.update(extra.pop("glosses", {}))
    return VocabularyRecord(
        lesson_code=lesson,
        headword=headword,
        sequence=seq,
        romanization=extra.pop("romanization", ""),
        glosses=glosses,
        **extra,
    )


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def sample_records():
    """Five records from one lesson, with distinct english glosses."""
    return [
        make_record("你好", "hello", seq=1, romanization="nǐ hǎo",
                    glosses={GlossLanguage.JAPANESE: "こんにちは"}),
        make_record("謝謝", "thank you", seq=2, romanization="xièxie",
                    glosses={GlossLanguage.JAPANESE: "ありがとう"}),
        make_record("再見", "goodbye", seq=3, romanization="zàijiàn"),
        make_record("老師", "teacher", seq=4, romanization="lǎoshī",
                    glosses={GlossLanguage.JAPANESE: "先生"}),
        make_record("學生", "student", seq=5, romanization="xuéshēng"),
    ]


@pytest.fixture
def vocab_csv_content():
    """Comma-separated book with a BOM, CRLF endings and quoted fields."""
    return (
        "\ufeff課-序號,序號,生詞,漢拼,詞類,英譯,越譯,日譯,冊\r\n"
        "1-1,1,你好,nǐ hǎo,IE,hello,xin chào,こんにちは,1\r\n"
        "1-1,2,謝謝,xièxie,V,thank you,cảm ơn,ありがとう,1\r\n"
        "1-2,1,喜歡,xǐhuān,Vst,\"to like, to be fond of\",thích,好き,1\r\n"
        "\r\n"
        "10-1,1,圖書館,túshūguǎn,N,library,thư viện,図書館,2\r\n"
        "2-1,1,咖啡,kāfēi,N,\"a \"\"strong\"\" coffee\",cà phê,コーヒー,1\r\n"
    )


@pytest.fixture
def vocab_tsv_content():
    """Tab-separated book with columns in a different order."""
    return (
        "生詞\t課-序號\t漢拼\t英譯\t韓譯\n"
        "茶\t3-2\tchá\ttea, black or green\t차\n"
        "水\t3-1\tshuǐ\twater\t물\n"
        "果汁\t3-1\tguǒzhī\tjuice\t\n"
    )
