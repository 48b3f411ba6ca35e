"""CLI entry point for lesson-vocab.

Usage:
  python -m lesson_vocab serve [--port PORT] [--host HOST]
  python -m lesson_vocab books
  python -m lesson_vocab lessons BOOK
  python -m lesson_vocab list BOOK LESSON [--lang english,japanese]
  python -m lesson_vocab history
"""
from __future__ import annotations

import asyncio
import sys


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "books":
        _books()
    elif command == "lessons":
        _lessons(args[1:])
    elif command == "list":
        _list(args[1:])
    elif command == "history":
        _history()
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, books, lessons, list, history")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _positional(args: list[str]) -> list[str]:
    out: list[str] = []
    skip = False
    for a in args:
        if skip:
            skip = False
            continue
        if a.startswith("--"):
            skip = True
            continue
        out.append(a)
    return out


def _serve(args: list[str]):
    import uvicorn

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    print(f"Starting Lesson Vocab on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    uvicorn.run(
        "lesson_vocab.app:app",
        host=host,
        port=port,
        reload=False,
        timeout_graceful_shutdown=5,
    )


def _load_index(book_id: str):
    from lesson_vocab.config import load_settings
    from lesson_vocab.errors import LessonVocabError
    from lesson_vocab.lessons import LessonIndex
    from lesson_vocab.parsers.vocabulary_parser import parse_vocabulary_text
    from lesson_vocab.sources import make_supplier

    settings = load_settings()
    supplier = make_supplier(settings)
    try:
        text = asyncio.run(supplier.fetch_text(book_id))
        records = parse_vocabulary_text(text)
    except LessonVocabError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if not records:
        print(f"No usable records in {book_id}.")
        sys.exit(1)
    return settings, LessonIndex.build(records)


def _books():
    from lesson_vocab.config import load_settings
    from lesson_vocab.sources import make_supplier

    supplier = make_supplier(load_settings())
    books = supplier.list_books()
    if not books:
        print(f"No books found ({supplier.name()}).")
        return
    for b in books:
        print(b)


def _lessons(args: list[str]):
    pos = _positional(args)
    if not pos:
        print("Usage: lessons BOOK")
        sys.exit(1)
    _, index = _load_index(pos[0])
    print(f"{pos[0]}: {len(index.records)} records in {len(index)} lessons")
    for code in index.lesson_codes():
        print(f"  Lesson {code:8s} {len(index.for_lesson(code)):4d} words")


def _list(args: list[str]):
    from lesson_vocab.quiz_generator import render_meaning

    pos = _positional(args)
    if len(pos) < 2:
        print("Usage: list BOOK LESSON [--lang english,japanese]")
        sys.exit(1)
    settings, index = _load_index(pos[0])
    langs = _parse_flag(args, "--lang", ",".join(settings.enabled_languages)).split(",")
    records = index.for_lesson(pos[1])
    if not records:
        print(f"Lesson {pos[1]} not found. Known lessons: {', '.join(index.lesson_codes())}")
        sys.exit(1)
    try:
        for r in records:
            print(f"{r.sequence:3d}  {r.headword}\t{r.romanization}\t{render_meaning(r, langs)}")
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


def _history():
    from lesson_vocab.config import load_settings
    from lesson_vocab.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    sessions = db.get_session_history(limit=20)
    if not sessions:
        print("No finished quizzes yet.")
    for s in sessions:
        total = s["questions_total"] or 0
        pct = round((s["questions_correct"] or 0) / max(total, 1) * 100, 1)
        print(f"{s['ended_at'][:16]}  {s['book_id']:12s} {s['lesson']:10s} "
              f"{s['mode']:16s} {s['questions_correct']}/{total} ({pct}%)")
    db.close()


if __name__ == "__main__":
    main()
