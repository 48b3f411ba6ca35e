"""Tests for the FastAPI application routes."""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from lesson_vocab import app as app_module
from lesson_vocab.app import app
from lesson_vocab.config import Settings
from lesson_vocab.db import Database
from lesson_vocab.sources import FileSupplier


@pytest.fixture
def test_app(tmp_path, vocab_csv_content):
    """Set up test app with a temporary database and one book on disk."""
    data_dir = tmp_path / "books"
    data_dir.mkdir()
    (data_dir / "book1.csv").write_text(vocab_csv_content, encoding="utf-8")
    (data_dir / "broken.csv").write_text("課-序號,生詞\n", encoding="utf-8")
    (data_dir / "foreign.csv").write_text("a,b\n1,2\n", encoding="utf-8")

    db = Database(tmp_path / "test.db")
    settings = Settings(data_dir=str(data_dir), db_path=str(tmp_path / "test.db"))

    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._db = db
    app_module._settings = settings
    app_module._supplier = FileSupplier(data_dir)
    app_module._books.clear()
    app_module._active_sessions.clear()

    with patch("lesson_vocab.app.save_settings"):
        client = TestClient(app, raise_server_exceptions=False)
        yield client, db, settings
        client.close()

    db.close()
    app_module._db = None
    app_module._settings = None
    app_module._supplier = None
    app_module._books.clear()
    app_module._active_sessions.clear()


def _correct_index(session_id: int) -> int:
    return app_module._active_sessions[session_id]["session"].quiz.current.correct_option_index


def _finish_quiz(client, session_id: int, right: bool) -> dict:
    data = client.get(f"/api/quiz/{session_id}").json()
    while data["state"] == "quizzing":
        idx = _correct_index(session_id)
        client.post(f"/api/quiz/{session_id}/answer", json={"option_index": idx if right else 1 - idx})
        data = client.post(f"/api/quiz/{session_id}/next").json()
    return data


class TestBooks:
    def test_list_books(self, test_app):
        client, _, _ = test_app
        resp = client.get("/api/books")
        assert resp.status_code == 200
        assert resp.json()["books"] == ["book1", "broken", "foreign"]

    def test_lessons_in_order(self, test_app):
        client, _, _ = test_app
        resp = client.get("/api/books/book1/lessons")
        assert resp.status_code == 200
        data = resp.json()
        assert [l["code"] for l in data["lessons"]] == ["1-1", "1-2", "2-1", "10-1"]
        assert data["lessons"][0]["count"] == 2
        assert data["volumes"] == ["1", "2"]

    def test_lesson_records(self, test_app):
        client, _, _ = test_app
        resp = client.get("/api/books/book1/lessons/1-2")
        assert resp.status_code == 200
        assert resp.json()["state"] == "listing"
        records = resp.json()["records"]
        assert records[0]["headword"] == "喜歡"
        assert records[0]["glosses"]["english"] == "to like, to be fond of"

    def test_unknown_lesson(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/books/book1/lessons/9-9").status_code == 404

    def test_missing_book(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/books/nope/lessons").status_code == 404

    def test_empty_book(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/books/broken/lessons").status_code == 422

    def test_unrecognized_header(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/books/foreign/lessons").status_code == 422

    def test_reload(self, test_app):
        client, _, settings = test_app
        client.get("/api/books/book1/lessons")
        book = settings.data_full_path / "book1.csv"
        book.write_text(book.read_text(encoding="utf-8") + "11-1,1,貓,māo,N,cat,mèo,猫,2\n", encoding="utf-8")
        resp = client.post("/api/books/book1/reload")
        assert resp.status_code == 200
        assert resp.json()["lessons"] == 5


class TestFlashcards:
    def test_start_and_navigate(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/flashcards/start", json={"book_id": "book1", "lesson": "1-1"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "flashcarding"
        assert data["card"]["front"] == "你好"
        sid = data["session_id"]

        data = client.post(f"/api/flashcards/{sid}/flip").json()
        assert data["card"]["face"] == "back"
        data = client.post(f"/api/flashcards/{sid}/next").json()
        assert data["card"]["position"] == 2
        assert data["card"]["face"] == "front"

    def test_unknown_action(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/flashcards/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        assert client.post(f"/api/flashcards/{sid}/jump").status_code == 404

    def test_exit(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/flashcards/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        resp = client.post(f"/api/flashcards/{sid}/exit")
        assert resp.json()["state"] == "lesson_selected"
        assert sid not in app_module._active_sessions

    def test_bad_mode(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/flashcards/start", json={"book_id": "book1", "lesson": "1-1", "mode": "sideways"})
        assert resp.status_code == 400

    def test_unknown_lesson(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/flashcards/start", json={"book_id": "book1", "lesson": "7-7"})
        assert resp.status_code == 404

    def test_empty_difficult_list(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/flashcards/start", json={"book_id": "book1", "difficult": True})
        assert resp.status_code == 400


class TestQuiz:
    def test_single_record_lesson_rejected(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-2"})
        assert resp.status_code == 400
        assert "at least 2" in resp.json()["detail"]

    def test_full_quiz(self, test_app):
        client, db, _ = test_app
        resp = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1", "mode": "chinese-pinyin"})
        assert resp.status_code == 200
        data = resp.json()
        sid = data["session_id"]
        assert data["total"] == 2
        assert data["question"]["prompt"] == "你好"
        assert sorted(data["question"]["options"]) == ["nǐ hǎo", "xièxie"]

        for _ in range(2):
            resp = client.post(f"/api/quiz/{sid}/answer", json={"option_index": _correct_index(sid)})
            assert resp.json()["correct"] is True
            resp = client.post(f"/api/quiz/{sid}/next")

        data = resp.json()
        assert data["state"] == "results"
        assert data["accuracy"] == 100.0
        history = db.get_session_history()
        assert history[0]["questions_correct"] == 2
        assert history[0]["mode"] == "chinese-pinyin"

    def test_answer_twice_scores_once(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        idx = _correct_index(sid)
        client.post(f"/api/quiz/{sid}/answer", json={"option_index": idx})
        data = client.post(f"/api/quiz/{sid}/answer", json={"option_index": 1 - idx}).json()
        assert data["correct"] is True
        assert data["score"] == 1

    def test_bad_option_index(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        assert client.post(f"/api/quiz/{sid}/answer", json={"option_index": 5}).status_code == 400
        assert client.post(f"/api/quiz/{sid}/answer", json={"option_index": "x"}).status_code == 400
        assert client.post(f"/api/quiz/{sid}/answer", json={}).status_code == 400

    def test_next_before_answer(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        assert client.post(f"/api/quiz/{sid}/next").status_code == 409

    def test_retry(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        client.post(f"/api/quiz/{sid}/answer", json={"option_index": _correct_index(sid)})
        data = client.post(f"/api/quiz/{sid}/retry").json()
        assert data["score"] == 0
        assert data["question"]["position"] == 1

    @pytest.mark.parametrize("restart", ["retry", "shuffle"])
    def test_restart_after_results_keeps_history(self, test_app, restart):
        client, db, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        _finish_quiz(client, sid, right=True)
        assert [(h["questions_total"], h["questions_correct"]) for h in db.get_session_history()] == [(2, 2)]

        client.post(f"/api/quiz/{sid}/{restart}")
        data = _finish_quiz(client, sid, right=False)
        assert data["state"] == "results"
        history = db.get_session_history()
        assert [(h["questions_total"], h["questions_correct"]) for h in history] == [(2, 0), (2, 2)]

    def test_retry_mid_quiz_reuses_history_row(self, test_app):
        client, db, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        client.post(f"/api/quiz/{sid}/answer", json={"option_index": _correct_index(sid)})
        client.post(f"/api/quiz/{sid}/retry")
        _finish_quiz(client, sid, right=True)
        history = db.get_session_history()
        assert len(history) == 1
        assert history[0]["id"] == sid

    def test_change_languages(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        resp = client.put(f"/api/sessions/{sid}/languages", json={"languages": ["japanese", "english"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["languages"] == ["english", "japanese"]
        assert "hello | こんにちは" in data["question"]["options"]

    def test_change_languages_invalid(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/quiz/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        assert client.put(f"/api/sessions/{sid}/languages", json={"languages": ["elvish"]}).status_code == 400
        assert client.put(f"/api/sessions/{sid}/languages", json={"languages": "english"}).status_code == 400
        assert client.put("/api/sessions/999/languages", json={"languages": ["english"]}).status_code == 404
        assert client.get(f"/api/quiz/{sid}").json()["languages"] == ["english"]

    def test_unknown_session(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/quiz/999").status_code == 404

    def test_flashcard_session_is_not_a_quiz(self, test_app):
        client, _, _ = test_app
        sid = client.post("/api/flashcards/start", json={"book_id": "book1", "lesson": "1-1"}).json()["session_id"]
        assert client.get(f"/api/quiz/{sid}").status_code == 404


class TestDifficult:
    def test_mark_list_practice(self, test_app):
        client, _, _ = test_app
        for key in ("你好-nǐ hǎo-1-1", "喜歡-xǐhuān-1-2"):
            resp = client.post("/api/difficult", json={"book_id": "book1", "key": key})
            assert resp.json()["added"] is True

        data = client.get("/api/difficult", params={"book_id": "book1"}).json()
        assert [r["headword"] for r in data["records"]] == ["你好", "喜歡"]

        resp = client.post("/api/quiz/start", json={"book_id": "book1", "difficult": True})
        assert resp.status_code == 200
        assert resp.json()["lesson"] == "difficult-words"

    def test_mark_unknown_key(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/difficult", json={"book_id": "book1", "key": "貓--1-1"})
        assert resp.status_code == 404

    def test_remove_and_clear(self, test_app):
        client, _, _ = test_app
        key = "你好-nǐ hǎo-1-1"
        client.post("/api/difficult", json={"book_id": "book1", "key": key})
        assert client.delete(f"/api/difficult/{key}").status_code == 200
        assert client.delete(f"/api/difficult/{key}").status_code == 404
        client.post("/api/difficult", json={"book_id": "book1", "key": key})
        client.delete("/api/difficult")
        assert client.get("/api/difficult").json()["keys"] == []


class TestSettings:
    def test_get(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/settings").json()["quiz_mode"] == "chinese-meaning"

    def test_update(self, test_app):
        client, _, settings = test_app
        resp = client.put("/api/settings", json={"quiz_mode": "pinyin-chinese", "enabled_languages": ["thai", "bogus"]})
        assert resp.status_code == 200
        assert settings.quiz_mode == "pinyin-chinese"
        assert settings.enabled_languages == ["thai"]

    def test_source_change_drops_cache(self, test_app):
        client, _, _ = test_app
        client.get("/api/books/book1/lessons")
        assert "book1" in app_module._books
        client.put("/api/settings", json={"source_url": "https://example.org/books"})
        assert app_module._books == {}
        assert app_module._supplier is None
