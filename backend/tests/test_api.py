import json

from tarjama.models import Deck, QuizAnswer, QuizSession, Word
from tarjama.services.llm import AllProvidersFailed


def _seed_deck(db_session, n=3, user_id="u1"):
    deck = Deck(user_id=user_id, name="Quran vocab", source_language="Arabic", target_language="English")
    db_session.add(deck)
    db_session.flush()
    for i in range(n):
        db_session.add(Word(
            id=f"{deck.id[:8]}-w{i}",
            deck_id=deck.id,
            word_type="noun",
            source_term=f"كَلِمَة{i}",
            target_term=f"word{i}",
        ))
    db_session.commit()
    return deck


def _generation_reply(n):
    return json.dumps([
        {"wordIndex": i, "sentence": f"جُمْلَة {i}", "translation": f"sentence {i}"}
        for i in range(n)
    ], ensure_ascii=False)


def _grade_reply(score):
    return json.dumps({"isCorrect": True, "score": score, "feedback": "ok"})


def _create(client, deck, user_id="u1"):
    resp = client.post("/api/quizzes", json={"user_id": user_id, "deck_id": deck.id})
    assert resp.status_code == 200
    return resp.json()


def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["app"] == "tarjama"


def test_create_quiz(client, db_session):
    deck = _seed_deck(db_session, n=3)
    data = _create(client, deck)
    assert data["status"] == "configuring"
    assert data["available_words"] == 3
    assert data["question_count"] == 3
    assert data["question"] is None


def test_create_quiz_unknown_deck(client, db_session):
    resp = client.post("/api/quizzes", json={"user_id": "u1", "deck_id": "nope"})
    assert resp.status_code == 404


def test_create_quiz_for_other_users_deck(client, db_session):
    deck = _seed_deck(db_session, user_id="someone-else")
    resp = client.post("/api/quizzes", json={"user_id": "u1", "deck_id": deck.id})
    assert resp.status_code == 404


def test_create_quiz_empty_deck(client, db_session):
    deck = _seed_deck(db_session, n=0)
    resp = client.post("/api/quizzes", json={"user_id": "u1", "deck_id": deck.id})
    assert resp.status_code == 400


def test_full_quiz_flow(client, db_session, fake_llm):
    deck = _seed_deck(db_session, n=3)
    quiz_id = _create(client, deck)["quiz_id"]

    fake_llm.queue(_generation_reply(2), _grade_reply(90), "not json at all")
    resp = client.post(f"/api/quizzes/{quiz_id}/start",
                       json={"direction": "source_to_target", "question_count": 2})
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "active"
    assert data["total_questions"] == 2
    assert data["question"]["rtl"] is True
    assert data["question"]["answer_language"] == "English"
    assert data["question"]["original_word"].startswith("كَلِمَة")
    assert "translation" not in data["question"]
    session_id = data["session_id"]

    resp = client.post(f"/api/quizzes/{quiz_id}/answer", json={"answer": "anything"})
    assert resp.status_code == 200
    assert resp.json()["is_correct"] is True

    resp = client.post(f"/api/quizzes/{quiz_id}/next")
    assert resp.json()["current_index"] == 1

    resp = client.post(f"/api/quizzes/{quiz_id}/answer", json={"answer": "SENTENCE 1 "})
    grade = resp.json()
    assert grade["fallback"] is True
    assert grade["is_correct"] is True

    resp = client.post(f"/api/quizzes/{quiz_id}/next")
    data = resp.json()
    assert data["status"] == "complete"
    assert data["summary"] == {
        "correct_answers": 2,
        "total_questions": 2,
        "percentage": 100,
        "average_score": 95,
    }

    db_session.expire_all()
    session = db_session.get(QuizSession, session_id)
    assert session.correct_answers == 2
    assert session.completed_at is not None
    assert db_session.query(QuizAnswer).filter(QuizAnswer.session_id == session_id).count() == 2


def test_generation_failure_returns_502_and_persists_nothing(client, db_session, fake_llm):
    deck = _seed_deck(db_session)
    quiz_id = _create(client, deck)["quiz_id"]
    fake_llm.queue(AllProvidersFailed("down"))

    resp = client.post(f"/api/quizzes/{quiz_id}/start", json={"direction": "source_to_target"})

    assert resp.status_code == 502
    assert client.get(f"/api/quizzes/{quiz_id}").json()["status"] == "configuring"
    assert db_session.query(QuizSession).count() == 0


def test_blank_answer_is_400(client, db_session, fake_llm):
    deck = _seed_deck(db_session, n=1)
    quiz_id = _create(client, deck)["quiz_id"]
    fake_llm.queue(_generation_reply(1))
    client.post(f"/api/quizzes/{quiz_id}/start", json={})
    resp = client.post(f"/api/quizzes/{quiz_id}/answer", json={"answer": "  "})
    assert resp.status_code == 400


def test_answer_before_start_is_409(client, db_session):
    deck = _seed_deck(db_session)
    quiz_id = _create(client, deck)["quiz_id"]
    resp = client.post(f"/api/quizzes/{quiz_id}/answer", json={"answer": "hello"})
    assert resp.status_code == 409


def test_restart_and_abandon(client, db_session, fake_llm):
    deck = _seed_deck(db_session, n=1)
    quiz_id = _create(client, deck)["quiz_id"]
    fake_llm.queue(_generation_reply(1))
    first = client.post(f"/api/quizzes/{quiz_id}/start", json={}).json()

    resp = client.post(f"/api/quizzes/{quiz_id}/restart")
    assert resp.json()["status"] == "configuring"
    assert resp.json()["session_id"] is None

    fake_llm.queue(_generation_reply(1))
    second = client.post(f"/api/quizzes/{quiz_id}/start", json={}).json()
    assert second["session_id"] != first["session_id"]

    assert client.delete(f"/api/quizzes/{quiz_id}").status_code == 200
    assert client.get(f"/api/quizzes/{quiz_id}").status_code == 404

    db_session.expire_all()
    sessions = db_session.query(QuizSession).all()
    assert len(sessions) == 2
    assert all(s.completed_at is None for s in sessions)


def test_generate_sentences_endpoint(client, fake_llm):
    fake_llm.queue(_generation_reply(2))
    resp = client.post("/api/generate-sentences", json={
        "words": [
            {"id": "a", "source_term": "بَيْت", "target_term": "house", "word_type": "noun"},
            {"id": "b", "source_term": "قَلَم", "target_term": "pen", "word_type": "noun"},
            {"id": "c", "source_term": "بَاب", "target_term": "door", "word_type": "noun"},
        ],
        "count": 2,
        "source_language": "Arabic",
        "target_language": "English",
        "direction": "source_to_target",
    })
    assert resp.status_code == 200
    sentences = resp.json()["sentences"]
    assert len(sentences) == 2
    assert len({s["word_id"] for s in sentences}) == 2


def test_generate_sentences_rejects_bad_batch(client, fake_llm):
    fake_llm.queue(_generation_reply(1))
    resp = client.post("/api/generate-sentences", json={
        "words": [
            {"id": "a", "source_term": "x", "target_term": "y"},
            {"id": "b", "source_term": "z", "target_term": "w"},
        ],
        "count": 2,
        "source_language": "Spanish",
        "target_language": "English",
    })
    assert resp.status_code == 502


def test_grade_answer_endpoint(client, fake_llm):
    fake_llm.queue(json.dumps({"isCorrect": False, "score": 150, "feedback": "Perfect"}))
    resp = client.post("/api/grade-answer", json={
        "sentence": "الكِتَابُ كَبِيرٌ",
        "correct_translation": "The book is big",
        "user_answer": "The book is large",
        "source_language": "Arabic",
        "target_language": "English",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["score"] == 100
    assert data["is_correct"] is True


def test_grade_answer_missing_fields(client):
    resp = client.post("/api/grade-answer", json={
        "sentence": "x",
        "correct_translation": "y",
        "user_answer": " ",
        "source_language": "Arabic",
        "target_language": "English",
    })
    assert resp.status_code == 400
