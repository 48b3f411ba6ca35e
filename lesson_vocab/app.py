"""FastAPI application with all routes."""
from __future__ import annotations

import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from lesson_vocab.config import Settings, load_settings, sanitize, save_settings
from lesson_vocab.db import Database
from lesson_vocab.difficult import DifficultWords
from lesson_vocab.errors import (
    EmptyInputError,
    EmptyPoolError,
    InsufficientPoolError,
    SourceUnavailableError,
    UnrecognizedSchemaError,
)
from lesson_vocab.lessons import LessonIndex
from lesson_vocab.parsers.vocabulary_parser import parse_vocabulary_text
from lesson_vocab.session import InvalidTransition, SessionState, StudySession
from lesson_vocab.sources import ByteSupplier, LessonSource, make_supplier

log = logging.getLogger("lesson_vocab.api")

app = FastAPI(title="Lesson Vocab")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
_supplier: ByteSupplier | None = None
_books: dict[str, LessonIndex] = {}
_active_sessions: dict[int, dict] = {}  # session_id -> {"session", "book_id", "kind"[, "history_id"]}


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def get_supplier() -> ByteSupplier:
    global _supplier
    if _supplier is None:
        _supplier = make_supplier(get_settings())
    return _supplier


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)


@app.on_event("shutdown")
async def shutdown():
    if _db:
        _db.close()


# ── Helpers ───────────────────────────────────────────────────────────────

async def load_book(book_id: str) -> LessonIndex:
    """Fetch, parse and index a book, caching the result."""
    if book_id in _books:
        return _books[book_id]
    try:
        text = await get_supplier().fetch_text(book_id)
    except SourceUnavailableError as e:
        raise HTTPException(404, str(e))
    try:
        records = parse_vocabulary_text(text)
    except (EmptyInputError, UnrecognizedSchemaError) as e:
        raise HTTPException(422, f"{book_id}: {e}")
    index = LessonIndex.build(records)
    log.info("Loaded %s: %d records in %d lessons", book_id, len(records), len(index))
    _books[book_id] = index
    return index


async def _resolve_source(body: dict):
    """Pick the record source named in a request body.

    ``{"book_id", "lesson"}`` selects a lesson; ``"difficult": true``
    practices the difficult words found in that book instead.
    """
    book_id = body.get("book_id", "")
    if not book_id:
        raise HTTPException(400, "No book_id provided")
    index = await load_book(book_id)
    if body.get("difficult"):
        source = DifficultWords(get_db()).practice_set(index.records)
    else:
        lesson = str(body.get("lesson", "")).strip()
        if not lesson:
            raise HTTPException(400, "No lesson provided")
        if lesson not in index:
            raise HTTPException(404, f"Lesson {lesson} not found in {book_id}")
        source = LessonSource(lesson)
    return book_id, source, source.resolve(index)


def _get_session(session_id: int, kind: str | None = None) -> dict:
    entry = _active_sessions.get(session_id)
    if entry is None or (kind is not None and entry["kind"] != kind):
        raise HTTPException(404, "Session not found")
    return entry


def _open_new_run(entry: dict) -> None:
    """Give a restarted quiz its own history row; the finished run keeps its score."""
    session: StudySession = entry["session"]
    entry["history_id"] = get_db().start_session(
        entry["book_id"], session.source.label, session.quiz.mode.value,
    )


def _respond(session_id: int, session: StudySession, **extra) -> dict:
    result = {"session_id": session_id, **session.snapshot()}
    result.update(extra)
    return result


# ── API: Books and lessons ────────────────────────────────────────────────

@app.get("/api/books")
async def api_books():
    supplier = get_supplier()
    return {"books": supplier.list_books(), "source": supplier.name()}


@app.get("/api/books/{book_id}/lessons")
async def api_lessons(book_id: str):
    index = await load_book(book_id)
    return {
        "book_id": book_id,
        "lessons": [
            {"code": code, "count": len(index.for_lesson(code))}
            for code in index.lesson_codes()
        ],
        "volumes": index.volumes(),
    }


@app.get("/api/books/{book_id}/lessons/{code}")
async def api_lesson_records(book_id: str, code: str):
    index = await load_book(book_id)
    source = LessonSource(code)
    session = StudySession(languages=get_settings().languages)
    session.select_lesson(source)
    try:
        records = session.show_list(source.resolve(index))
    except EmptyPoolError:
        raise HTTPException(404, f"Lesson {code} not found in {book_id}")
    return {
        "book_id": book_id,
        "lesson": source.label,
        "state": session.state.value,
        "records": [r.to_dict() for r in records],
    }


@app.post("/api/books/{book_id}/reload")
async def api_reload(book_id: str):
    _books.pop(book_id, None)
    index = await load_book(book_id)
    return {"book_id": book_id, "lessons": len(index), "records": len(index.records)}


# ── API: Flashcards ───────────────────────────────────────────────────────

@app.post("/api/flashcards/start")
async def api_flashcards_start(request: Request):
    body = await request.json()
    s = get_settings()
    book_id, source, records = await _resolve_source(body)

    try:
        session = StudySession(languages=body.get("languages", s.languages))
        session.select_lesson(source)
        session.start_flashcards(records, body.get("mode", s.flashcard_mode))
    except EmptyPoolError as e:
        raise HTTPException(400, str(e))
    except ValueError as e:
        raise HTTPException(400, f"Invalid option: {e}")

    session_id = get_db().start_session(book_id, source.label, "flashcards")
    _active_sessions[session_id] = {"session": session, "book_id": book_id, "kind": "flashcards"}
    if body.get("shuffle"):
        session.shuffle_cards()
    return _respond(session_id, session)


@app.post("/api/flashcards/{session_id}/{action}")
async def api_flashcards_action(session_id: int, action: str):
    session: StudySession = _get_session(session_id, "flashcards")["session"]
    actions = {
        "next": session.next_card,
        "prev": session.prev_card,
        "flip": session.flip_card,
        "shuffle": session.shuffle_cards,
    }
    if action == "exit":
        session.exit()
        del _active_sessions[session_id]
        return {"session_id": session_id, "state": session.state.value}
    if action not in actions:
        raise HTTPException(404, f"Unknown flashcard action: {action}")
    actions[action]()
    return _respond(session_id, session)


# ── API: Quiz ─────────────────────────────────────────────────────────────

@app.post("/api/quiz/start")
async def api_quiz_start(request: Request):
    body = await request.json()
    s = get_settings()
    book_id, source, records = await _resolve_source(body)

    try:
        session = StudySession(languages=body.get("languages", s.languages))
        session.select_lesson(source)
        mode = body.get("mode", s.quiz_mode)
        session.start_quiz(records, mode, body.get("shuffle", s.shuffle_questions))
    except InsufficientPoolError as e:
        raise HTTPException(400, str(e))
    except ValueError as e:
        raise HTTPException(400, f"Invalid option: {e}")

    session_id = get_db().start_session(book_id, source.label, session.quiz.mode.value)
    _active_sessions[session_id] = {
        "session": session, "book_id": book_id, "kind": "quiz", "history_id": session_id,
    }
    return _respond(session_id, session)


@app.get("/api/quiz/{session_id}")
async def api_quiz_get(session_id: int):
    session: StudySession = _get_session(session_id, "quiz")["session"]
    return _respond(session_id, session)


@app.post("/api/quiz/{session_id}/answer")
async def api_quiz_answer(session_id: int, request: Request):
    body = await request.json()
    session: StudySession = _get_session(session_id, "quiz")["session"]
    try:
        correct = session.select(int(body["option_index"]))
    except (KeyError, TypeError, ValueError):
        raise HTTPException(400, "option_index must be an integer")
    except IndexError as e:
        raise HTTPException(400, str(e))
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return _respond(session_id, session, correct=correct)


@app.post("/api/quiz/{session_id}/next")
async def api_quiz_next(session_id: int):
    entry = _get_session(session_id, "quiz")
    session: StudySession = entry["session"]
    try:
        session.advance()
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    if session.state is SessionState.RESULTS:
        get_db().end_session(entry["history_id"], session.quiz.total, session.quiz.score)
    return _respond(session_id, session)


@app.post("/api/quiz/{session_id}/retry")
async def api_quiz_retry(session_id: int):
    entry = _get_session(session_id, "quiz")
    session: StudySession = entry["session"]
    finished = session.state is SessionState.RESULTS
    session.retry()
    if finished:
        _open_new_run(entry)
    return _respond(session_id, session)


@app.post("/api/quiz/{session_id}/shuffle")
async def api_quiz_shuffle(session_id: int):
    entry = _get_session(session_id, "quiz")
    session: StudySession = entry["session"]
    finished = session.state is SessionState.RESULTS
    session.shuffle_quiz()
    if finished:
        _open_new_run(entry)
    return _respond(session_id, session)


@app.post("/api/quiz/{session_id}/exit")
async def api_quiz_exit(session_id: int):
    session: StudySession = _get_session(session_id, "quiz")["session"]
    session.exit()
    del _active_sessions[session_id]
    return {"session_id": session_id, "state": session.state.value}


@app.put("/api/sessions/{session_id}/languages")
async def api_session_languages(session_id: int, request: Request):
    """Change the gloss languages of a running flashcard or quiz session."""
    body = await request.json()
    session: StudySession = _get_session(session_id)["session"]
    languages = body.get("languages")
    if not isinstance(languages, list):
        raise HTTPException(400, "languages must be a list")
    try:
        session.set_languages(languages)
    except ValueError as e:
        raise HTTPException(400, f"Invalid option: {e}")
    return _respond(session_id, session)


@app.get("/api/history")
async def api_history():
    return {"sessions": get_db().get_session_history(limit=10)}


# ── API: Difficult words ──────────────────────────────────────────────────

@app.get("/api/difficult")
async def api_difficult_list(book_id: str = ""):
    difficult = DifficultWords(get_db())
    if not book_id:
        return {"keys": difficult.keys()}
    index = await load_book(book_id)
    found, missing = difficult.resolve(index.records)
    return {
        "keys": difficult.keys(),
        "records": [r.to_dict() for r in found],
        "missing": missing,
    }


@app.post("/api/difficult")
async def api_difficult_mark(request: Request):
    body = await request.json()
    book_id = body.get("book_id", "")
    key = body.get("key", "")
    if not book_id or not key:
        raise HTTPException(400, "book_id and key are required")
    index = await load_book(book_id)
    record = next((r for r in index.records if r.key == key), None)
    if record is None:
        raise HTTPException(404, f"No record with key {key!r} in {book_id}")
    added = DifficultWords(get_db()).mark(record)
    return {"key": key, "added": added}


@app.delete("/api/difficult/{key}")
async def api_difficult_remove(key: str):
    removed = DifficultWords(get_db()).remove(key)
    if not removed:
        raise HTTPException(404, "Not on the difficult list")
    return {"key": key, "removed": True}


@app.delete("/api/difficult")
async def api_difficult_clear():
    DifficultWords(get_db()).clear()
    return {"ok": True}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    global _supplier
    body = await request.json()
    s = get_settings()
    for k, v in sanitize(body).items():
        setattr(s, k, v)
    save_settings(s)
    if "source_url" in body or "data_dir" in body:
        _supplier = None
        _books.clear()
    return s.to_dict()
