"""Map decoded vocabulary rows onto VocabularyRecord objects.

The source tables use a fixed set of Chinese column labels:

  | 課-序號 | 序號 | 生詞 | 漢拼 | 詞類 | 英譯 | 越譯 | 泰譯 | 緬譯 | 日譯 | 韓譯 | 冊 |

Not every book has every column, and column order varies. Unknown
columns are ignored; rows that are too short or lack a headword or
lesson code are dropped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from lesson_vocab.errors import UnrecognizedSchemaError
from lesson_vocab.models import GlossLanguage, VocabularyRecord
from lesson_vocab.parsers.tabular import decode

_log = logging.getLogger("lesson_vocab.parser")


class Field(str, Enum):
    LESSON_CODE = "lesson_code"
    SEQUENCE = "sequence"
    HEADWORD = "headword"
    ROMANIZATION = "romanization"
    PART_OF_SPEECH = "part_of_speech"
    ENGLISH = "english"
    VIETNAMESE = "vietnamese"
    THAI = "thai"
    BURMESE = "burmese"
    JAPANESE = "japanese"
    KOREAN = "korean"
    VOLUME = "volume"


HEADER_LABELS = MappingProxyType({
    Field.LESSON_CODE: "課-序號",
    Field.SEQUENCE: "序號",
    Field.HEADWORD: "生詞",
    Field.ROMANIZATION: "漢拼",
    Field.PART_OF_SPEECH: "詞類",
    Field.ENGLISH: "英譯",
    Field.VIETNAMESE: "越譯",
    Field.THAI: "泰譯",
    Field.BURMESE: "緬譯",
    Field.JAPANESE: "日譯",
    Field.KOREAN: "韓譯",
    Field.VOLUME: "冊",
})

GLOSS_FIELDS = MappingProxyType({
    Field.ENGLISH: GlossLanguage.ENGLISH,
    Field.VIETNAMESE: GlossLanguage.VIETNAMESE,
    Field.THAI: GlossLanguage.THAI,
    Field.BURMESE: GlossLanguage.BURMESE,
    Field.JAPANESE: GlossLanguage.JAPANESE,
    Field.KOREAN: GlossLanguage.KOREAN,
})


def _check_label_table() -> dict[str, Field]:
    missing = [f for f in Field if f not in HEADER_LABELS]
    if missing:
        raise RuntimeError(f"header table has no label for {missing}")
    by_label = {label: f for f, label in HEADER_LABELS.items()}
    if len(by_label) != len(HEADER_LABELS):
        raise RuntimeError("header table maps two fields to the same label")
    if set(GLOSS_FIELDS.values()) != set(GlossLanguage):
        raise RuntimeError("every gloss language needs a gloss column")
    return by_label


FIELD_BY_LABEL = MappingProxyType(_check_label_table())


@dataclass
class ParseReport:
    records: list[VocabularyRecord] = field(default_factory=list)
    rows_seen: int = 0
    rows_skipped_short: int = 0
    rows_skipped_invalid: int = 0

    @property
    def rows_skipped(self) -> int:
        return self.rows_skipped_short + self.rows_skipped_invalid


def clean_token(token: str) -> str:
    """Trim a token and unwrap one pair of surrounding double quotes."""
    value = token.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        value = value[1:-1].replace('""', '"')
    return value


def column_map(header_row: list[str]) -> dict[int, Field]:
    """Column index -> canonical field for every recognized header label."""
    columns: dict[int, Field] = {}
    for idx, label in enumerate(header_row):
        f = FIELD_BY_LABEL.get(clean_token(label))
        if f is not None and f not in columns.values():
            columns[idx] = f
    return columns


def _parse_sequence(raw: str, default: int) -> int:
    try:
        return int(raw)
    except ValueError:
        return default


def _build_record(row: list[str], columns: dict[int, Field], row_number: int) -> VocabularyRecord:
    values: dict[Field, str] = {f: "" for f in Field}
    for idx, f in columns.items():
        values[f] = clean_token(row[idx])
    glosses = {lang: values[f] for f, lang in GLOSS_FIELDS.items()}
    return VocabularyRecord(
        lesson_code=values[Field.LESSON_CODE],
        headword=values[Field.HEADWORD],
        sequence=_parse_sequence(values[Field.SEQUENCE], row_number),
        romanization=values[Field.ROMANIZATION],
        part_of_speech=values[Field.PART_OF_SPEECH],
        glosses=glosses,
        volume=values[Field.VOLUME],
    )


def map_rows_with_report(header_row: list[str], data_rows: list[list[str]]) -> ParseReport:
    columns = column_map(header_row)
    if not columns:
        raise UnrecognizedSchemaError(
            f"no known column labels in header: {[h.strip() for h in header_row]}"
        )

    report = ParseReport()
    width = len(header_row)
    for row_number, row in enumerate(data_rows, 1):
        report.rows_seen += 1
        if len(row) < width:
            report.rows_skipped_short += 1
            _log.debug("Row %d: %d fields, header has %d, skipped", row_number, len(row), width)
            continue
        record = _build_record(row, columns, row_number)
        if not record.is_valid:
            report.rows_skipped_invalid += 1
            _log.debug("Row %d: missing headword or lesson code, skipped", row_number)
            continue
        report.records.append(record)

    if report.rows_skipped:
        _log.info(
            "Parsed %d records, skipped %d short and %d invalid rows",
            len(report.records), report.rows_skipped_short, report.rows_skipped_invalid,
        )
    return report


def map_records(header_row: list[str], data_rows: list[list[str]]) -> list[VocabularyRecord]:
    return map_rows_with_report(header_row, data_rows).records


def parse_vocabulary_text(text: str) -> list[VocabularyRecord]:
    """Decode and map a whole vocabulary file's text."""
    rows = decode(text)
    return map_records(rows[0], rows[1:])


def parse_vocabulary_file(path: Path) -> list[VocabularyRecord]:
    return parse_vocabulary_text(path.read_text(encoding="utf-8"))
