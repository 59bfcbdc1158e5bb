import pytest
from werkzeug.security import generate_password_hash

from app.aigency import create_app
from app.aigency.auth import _login_attempts
from app.aigency.db import session_scope
from app.aigency.models import Base, User
from app.aigency.modules.assessments.scoring import (
    category_score,
    improvements_for,
    priority_for,
    recommendations_for,
    score_answer,
    strengths_for,
)
from scripts.init_db import seed

OPTIONS = ["a", "b", "c", "d", "e", "f"]


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    _login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        seed(s, admin_email="admin@example.com", admin_password="pw")
        for email in ("alice@example.com", "bob@example.com"):
            s.add(User(email=email, password_hash=generate_password_hash("pw"), first_name=email[:3], last_name="X", is_active=True))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="admin@example.com"):
    client.post("/auth/logout")
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _full_responses(client) -> dict:
    answers = {"scale": "8", "boolean": "yes", "text": "We copy figures between spreadsheets every morning."}
    return {
        q["id"]: (q["options"][-1] if q["question_type"] == "multiple_choice" else answers[q["question_type"]])
        for q in client.get("/assessments/questions").json["questions"]
    }


def test_score_scale_and_boolean():
    assert score_answer("scale", "7", weight=2) == 14.0
    assert score_answer("scale", "7 - fairly") == 7.0
    assert score_answer("scale", "lots") == 0.0
    assert score_answer("boolean", "Yes") == 10
    assert score_answer("boolean", "true") == 10
    assert score_answer("boolean", "no") == 5
    assert score_answer("boolean", None) == 0.0
    assert score_answer("text", "   ") == 0.0


def test_score_multiple_choice():
    assert score_answer("multiple_choice", "a", options=OPTIONS) == 2
    assert score_answer("multiple_choice", "b", options=OPTIONS) == 4
    assert score_answer("multiple_choice", "f", options=OPTIONS) == 10
    assert score_answer("multiple_choice", "zzz", options=OPTIONS) == 0.0
    assert score_answer("multiple_choice", "anything", weight=2) == 10
    assert score_answer("multiple_choice", "anything", options=[]) == 0.0


def test_score_text_length_and_vocabulary():
    assert score_answer("text", "short") == 1
    # just over 50 characters, a dozen distinct words
    sixty = "one two three four five six seven eight nine ten eleven xx"
    assert len(sixty) > 50
    assert score_answer("text", sixty) == 2 + 2
    long_text = " ".join(f"word{i}" for i in range(60))
    assert score_answer("text", long_text) == 10


def test_category_result_thresholds():
    assert category_score([(8.0, 1.0), (4.0, 1.0)]) == 6.0
    assert category_score([(12.0, 2.0)]) == 6.0
    assert category_score([]) == 0.0

    assert priority_for(4.9) == "high"
    assert priority_for(5) == "medium"
    assert priority_for(7) == "low"

    assert strengths_for("Data", 8)[0] == "Strong foundation in Data"
    assert strengths_for("Data", 2) == ["Opportunity for growth identified"]
    assert improvements_for("Data", 6)[0] == "Room for improvement in Data"
    assert improvements_for("Data", 9) == ["Continue current positive momentum"]

    rec = recommendations_for("Data & Information", 3)
    assert rec["priority"] == "high"
    assert "Audit your current data infrastructure" in rec["actions"]
    assert recommendations_for("Current AI Understanding", 6)["resources"] == ["AI Implementation Checklist"]


def test_questionnaire_is_seeded(client):
    cats = client.get("/assessments/categories").json["categories"]
    assert [c["name"] for c in cats] == ["Current AI Understanding", "Business Operations", "Data & Information"]
    questions = client.get("/assessments/questions").json["questions"]
    assert len(questions) == 8
    first_cat = client.get(f"/assessments/questions?category_id={cats[0]['id']}").json["questions"]
    assert len(first_cat) == 3


def test_partial_anonymous_submission(client):
    questions = client.get("/assessments/questions").json["questions"]
    scale_ids = [q["id"] for q in questions if q["question_type"] == "scale"]
    r = client.post("/assessments/submit", json={"responses": {str(i): "6" for i in scale_ids}})
    assert r.status_code == 201
    body = r.json
    assert body["completion_percentage"] == 25.0
    assert body["score"] == 6.0
    assert body["assessment"]["status"] == "in_progress"
    assert body["assessment"]["user_id"] is None
    assert body["assessment"]["results"] == []
    assert len(body["missing_required"]) == 6


def test_form_submission_uses_question_fields(client):
    questions = client.get("/assessments/questions").json["questions"]
    form = {f"question_{questions[0]['id']}": "5", "title": "Quick check"}
    r = client.post("/assessments/submit", data=form)
    assert r.status_code == 201
    assert r.json["assessment"]["title"] == "Quick check"
    assert len(r.json["assessment"]["responses"]) == 1


def test_complete_submission_generates_results(client):
    _login(client, "alice@example.com")
    r = client.post("/assessments/submit", json={"responses": _full_responses(client)})
    body = r.json
    assert body["assessment"]["status"] == "completed"
    assert body["assessment"]["completed_at"]
    assert body["completion_percentage"] == 100.0
    assert body["missing_required"] == []
    results = {res["category_name"]: res for res in body["assessment"]["results"]}
    assert set(results) == {"Current AI Understanding", "Business Operations", "Data & Information"}
    # scale 8 + yes 10 + last option 10
    assert results["Current AI Understanding"]["category_score"] == pytest.approx(9.33, abs=0.01)
    assert results["Current AI Understanding"]["recommendations"]["priority"] == "low"

    assessment_id = body["assessment"]["id"]
    mine = client.get("/assessments/mine").json["assessments"]
    assert [a["id"] for a in mine] == [assessment_id]
    report = client.get(f"/assessments/{assessment_id}/report").json["report"]
    assert len(report["responses"]) == 8
    assert report["responses"][0]["question_text"]

    _login(client, "bob@example.com")
    assert client.get(f"/assessments/{assessment_id}").status_code == 404

    _login(client)
    assert client.get(f"/assessments/{assessment_id}/report").status_code == 200


def test_status_update_and_delete_by_owner(client):
    headers = _login(client, "alice@example.com")
    assessment_id = client.post("/assessments/submit", json={"responses": {}}).json["assessment"]["id"]

    r = client.post(f"/assessments/{assessment_id}/status", json={"status": "abandoned"}, headers=headers)
    assert r.json["assessment"]["status"] == "abandoned"
    r = client.post(f"/assessments/{assessment_id}/status", json={"status": "lost"}, headers=headers)
    assert r.status_code == 400

    other = _login(client, "bob@example.com")
    assert client.post(f"/assessments/{assessment_id}/delete", headers=other).status_code == 404

    headers = _login(client, "alice@example.com")
    assert client.post(f"/assessments/{assessment_id}/delete", headers=headers).status_code == 200
    assert client.get("/assessments/mine").json["assessments"] == []


def test_admin_listing_and_stats(client):
    _login(client, "alice@example.com")
    client.post("/assessments/submit", json={"responses": _full_responses(client)})
    client.post("/assessments/submit", json={"responses": {}})
    assert client.get("/assessments/admin").status_code == 403

    _login(client)
    r = client.get("/assessments/admin?status=completed")
    assert r.json["total"] == 1
    stats = client.get("/assessments/admin/stats").json["stats"]
    assert stats["total"] == 2
    assert stats["completed"] == 1
    assert stats["in_progress"] == 1
    assert stats["completion_rate"] == 50.0
    assert len(stats["categories"]) == 3
    assert all(c["count"] == 1 for c in stats["categories"])


def test_admin_questionnaire_editing(client):
    headers = _login(client)
    cat = client.post("/assessments/admin/categories", json={"name": "Governance"}, headers=headers).json["category"]
    r = client.post(
        "/assessments/admin/questions",
        json={"category_id": cat["id"], "question_text": "Pick one option", "question_type": "multiple_choice"},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json["error"] == "Multiple choice questions need at least one option."

    r = client.post(
        "/assessments/admin/questions",
        json={"category_id": cat["id"], "question_text": "Do you have an AI policy?", "question_type": "boolean", "options": ["x"]},
        headers=headers,
    )
    assert r.status_code == 201
    question = r.json["question"]
    assert question["options"] is None

    r = client.post(f"/assessments/admin/questions/{question['id']}", json={"is_active": False, "weight": 2}, headers=headers)
    assert r.json["question"]["is_active"] is False
    assert r.json["question"]["weight"] == 2.0
    assert len(client.get("/assessments/questions").json["questions"]) == 8
