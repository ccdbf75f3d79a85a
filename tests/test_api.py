# tests/test_api.py

import json

import pytest
import requests

import api
import settings
from api import ApiClient, ApiClientError, Session, friendly_message, unwrap_list


class FakeResponse:
    def __init__(self, status_code=200, body=None, content_type="application/json", text=None):
        self.status_code = status_code
        self.headers = {"content-type": content_type} if content_type else {}
        self._body = body
        self.text = text if text is not None else (json.dumps(body) if body is not None else "")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None: raise ValueError("no json")
        return self._body


@pytest.fixture
def http(monkeypatch):
    """Routes requests.Session.request to queued fake responses and records each call."""
    state = {"responses": [], "calls": []}

    def fake_request(self, method, url, **kwargs):
        state["calls"].append({"method": method, "url": url, **kwargs})
        resp = state["responses"].pop(0)
        if isinstance(resp, Exception): raise resp
        return resp

    monkeypatch.setattr(requests.Session, "request", fake_request)
    return state


@pytest.fixture
def client():
    return ApiClient("https://school.example.com/")


# === request handling ===


def test_base_url_trailing_slash_is_dropped(client, http):
    http["responses"].append(FakeResponse(body={"ok": True}))
    client.get("/api-v1/parent/dashboard/")
    assert http["calls"][0]["url"] == "https://school.example.com/api-v1/parent/dashboard/"
    assert http["calls"][0]["timeout"] == settings.DEFAULT_TIMEOUT


def test_missing_base_url_raises_without_request(http):
    with pytest.raises(ApiClientError) as e:
        ApiClient(None).get("/api-v1/parent/grades/")
    assert e.value.status == 0
    assert "not configured" in e.value.message
    assert http["calls"] == []


def test_error_message_prefers_message_field(client, http):
    http["responses"].append(FakeResponse(400, {"message": "Bad input", "error": "ignored", "detail": "ignored"}))
    with pytest.raises(ApiClientError) as e:
        client.get("/x/")
    assert e.value.message == "Bad input"
    assert e.value.status == 400


def test_error_message_falls_back_to_error_then_detail(client, http):
    http["responses"].append(FakeResponse(403, {"error": "Forbidden here"}))
    http["responses"].append(FakeResponse(404, {"detail": "Not found."}))
    with pytest.raises(ApiClientError) as first:
        client.get("/a/")
    with pytest.raises(ApiClientError) as second:
        client.get("/b/")
    assert first.value.message == "Forbidden here"
    assert second.value.message == "Not found."


def test_error_without_message_uses_status(client, http):
    http["responses"].append(FakeResponse(500, {}))
    with pytest.raises(ApiClientError) as e:
        client.get("/x/")
    assert e.value.message == "Request failed with status 500"


def test_error_carries_field_errors(client, http):
    http["responses"].append(FakeResponse(400, {"message": "Validation failed", "errors": {"email": ["Enter a valid email."], "password": "Too short."}}))
    with pytest.raises(ApiClientError) as e:
        client.post("/api-v1/auth/parent/", {"identifier": "x"})
    assert e.value.errors["email"] == ["Enter a valid email."]
    assert e.value.field_messages() == ["email: Enter a valid email.", "password: Too short."]


def test_non_json_error_response(client, http):
    http["responses"].append(FakeResponse(502, content_type="text/html", text="<html>Bad Gateway</html>"))
    with pytest.raises(ApiClientError) as e:
        client.get("/x/")
    assert e.value.status == 502
    assert e.value.message == "Request failed with status 502"
    assert e.value.errors == {}


def test_non_json_success_returns_text(client, http):
    http["responses"].append(FakeResponse(200, content_type="text/plain", text="pong"))
    assert client.get("/ping/") == "pong"


def test_malformed_json_raises(client, http):
    http["responses"].append(FakeResponse(200, body=None, text="{oops"))
    with pytest.raises(ApiClientError) as e:
        client.get("/x/")
    assert e.value.message == "Malformed JSON in response"


def test_transport_error_has_status_zero(client, http):
    http["responses"].append(requests.ConnectionError("Connection refused"))
    with pytest.raises(ApiClientError) as e:
        client.get("/x/")
    assert e.value.status == 0
    assert "Connection refused" in e.value.message


# === auth ===


def test_login_stores_session_and_sends_token(client, http):
    http["responses"].append(FakeResponse(body={"token": "abc123", "user": {"id": 4, "name": "Sarah Johnson"}}))
    http["responses"].append(FakeResponse(body={"children": []}))

    session = client.login("parent", "sarah@example.com", "secret")
    client.get_my_children()

    assert session.role == settings.ROLE_PARENT
    assert session.name == "Sarah Johnson"
    assert http["calls"][0]["url"].endswith("/api-v1/auth/parent/")
    assert http["calls"][0]["json"] == {"identifier": "sarah@example.com", "password": "secret"}
    assert http["calls"][0]["headers"] == {}
    assert http["calls"][1]["headers"] == {"Authorization": "Token abc123"}


def test_teacher_login_uses_content_endpoint(client, http):
    http["responses"].append(FakeResponse(body={"token": "t", "user": {"role": "teacher"}}))
    session = client.login(settings.ROLE_TEACHER, "t@example.com", "pw")
    assert http["calls"][0]["url"].endswith("/api-v1/auth/content/")
    assert session.role == settings.ROLE_TEACHER


def test_login_without_token_is_malformed(client, http):
    http["responses"].append(FakeResponse(body={"user": {}}))
    with pytest.raises(ApiClientError):
        client.login("parent", "a", "b")
    assert client.session is None


def test_login_with_non_object_user_is_malformed(client, http):
    http["responses"].append(FakeResponse(body={"token": "abc", "user": "sarah@example.com"}))
    with pytest.raises(ApiClientError) as e:
        client.login("parent", "sarah@example.com", "secret")
    assert e.value.message == "Malformed login response"
    assert e.value.status == 200
    assert client.session is None


def test_login_unknown_role(client):
    with pytest.raises(ValueError):
        client.login("admin", "a", "b")


def test_session_defaults():
    s = Session("tok", {"email": "a@b.c"})
    assert s.name == "a@b.c"
    assert s.role == ""
    assert s.user_id is None


# === readers and mutations ===


def test_reader_unwraps_keyed_list(client, http):
    http["responses"].append(FakeResponse(body={"grades": [{"id": 1}]}))
    assert client.get_parent_grades() == [{"id": 1}]


def test_reader_accepts_bare_list(client, http):
    http["responses"].append(FakeResponse(body=[{"id": 1}, {"id": 2}]))
    assert len(client.get_teacher_subjects()) == 2


def test_analytics_passes_child_param(client, http):
    http["responses"].append(FakeResponse(body={"summarycards": {}}))
    http["responses"].append(FakeResponse(body={"summarycards": {}}))
    client.get_parent_analytics(7)
    client.get_parent_analytics()
    assert http["calls"][0]["params"] == {"child": 7}
    assert http["calls"][1]["params"] is None


def test_grade_submission_posts_score(client, http):
    http["responses"].append(FakeResponse(body={"message": "Graded"}))
    client.grade_submission(12, 18, "Well done")
    call = http["calls"][0]
    assert call["method"] == "POST"
    assert call["url"].endswith("/api-v1/teacher/submissions/12/grade/")
    assert call["json"] == {"score": 18, "feedback": "Well done"}


def test_moderate_posts_comment(client, http):
    http["responses"].append(FakeResponse(body={}))
    client.moderate("subjects", 3, "reject", "Needs more detail")
    assert http["calls"][0]["url"].endswith("/api-v1/teacher/subjects/3/reject/")
    assert http["calls"][0]["json"] == {"moderation_comment": "Needs more detail"}


def test_moderate_rejects_unknown_kind_and_action(client):
    with pytest.raises(ValueError):
        client.moderate("parents", 1, "approve")
    with pytest.raises(ValueError):
        client.moderate("subjects", 1, "delete")


def test_moderate_lesson_assessment(client, http):
    http["responses"].append(FakeResponse(body={}))
    client.moderate("lesson-assessments", 8, "approve")
    assert http["calls"][0]["url"].endswith("/api-v1/teacher/lesson-assessments/8/approve/")
    assert http["calls"][0]["json"] == {"moderation_comment": ""}
    with pytest.raises(ValueError):
        client.moderate("lessons", 8, "approve")


def test_change_password_posts_all_three_fields(client, http):
    http["responses"].append(FakeResponse(body={"message": "Password updated."}))
    assert client.change_password("oldpass12", "newpass123", "newpass123") == {"message": "Password updated."}
    assert http["calls"][0]["url"].endswith("/api-v1/auth/change-password/")
    assert http["calls"][0]["json"] == {"current_password": "oldpass12", "new_password": "newpass123", "confirm_password": "newpass123"}


def test_link_child_posts_contact(client, http):
    http["responses"].append(FakeResponse(body={"id": 3, "name": "Emma"}))
    client.link_child(1024, "emma@example.com")
    assert http["calls"][0]["url"].endswith("/api-v1/onboarding/linkchild/")
    assert http["calls"][0]["json"] == {"student_id": 1024, "student_email": "emma@example.com", "student_phone": ""}


def test_create_subject_unwraps_single_item_list(client, http):
    http["responses"].append(FakeResponse(body=[{"id": 9, "name": "Mathematics"}]))
    http["responses"].append(FakeResponse(body={"id": 10, "name": "Art"}))
    assert client.create_subject({"name": "Mathematics"}) == {"id": 9, "name": "Mathematics"}
    assert client.create_subject({"name": "Art"}) == {"id": 10, "name": "Art"}
    assert http["calls"][0]["url"].endswith("/api-v1/content/subjects/")


def test_create_lesson_assessment_posts_payload(client, http):
    http["responses"].append(FakeResponse(body={"id": 4}))
    payload = {"lesson": 2, "type": "QUIZ", "title": "Vowels", "status": "DRAFT"}
    client.create_lesson_assessment(payload)
    assert http["calls"][0]["url"].endswith("/api-v1/teacher/lesson-assessments/create/")
    assert http["calls"][0]["json"] == payload


def test_teacher_lessons_reader(client, http):
    http["responses"].append(FakeResponse(body={"lessons": [{"id": 2, "title": "Phonics"}]}))
    assert client.get_teacher_lessons() == [{"id": 2, "title": "Phonics"}]
    assert http["calls"][0]["url"].endswith("/api-v1/teacher/lessons/")


# === helpers ===


def test_unwrap_list_rejects_unexpected_shape():
    assert unwrap_list({"children": [1]}, "children") == [1]
    with pytest.raises(ApiClientError) as e:
        unwrap_list({"children": None}, "children")
    assert "Malformed" in e.value.message


def test_friendly_message():
    assert friendly_message("Invalid password") == api.ERROR_MAPPINGS["password"]
    assert friendly_message("Network timeout") == api.ERROR_MAPPINGS["network"]
    assert friendly_message("Child has no grades yet") == "Child has no grades yet"
    assert friendly_message("x" * 120) == "An error occurred. Please check your input and try again."


# === settings ===


def test_base_url_from_secrets(monkeypatch):
    monkeypatch.setattr(settings, "_secret", lambda section, key: "https://api.example.com/" if key == "base_url" else None)
    assert settings.get_api_base_url() == "https://api.example.com"


def test_base_url_from_environment(monkeypatch):
    monkeypatch.setattr(settings, "_secret", lambda section, key: None)
    monkeypatch.setenv("CLASSVIEW_API_BASE_URL", "http://localhost:8000/")
    assert settings.get_api_base_url() == "http://localhost:8000"


def test_base_url_unset(monkeypatch):
    monkeypatch.setattr(settings, "_secret", lambda section, key: None)
    monkeypatch.delenv("CLASSVIEW_API_BASE_URL", raising=False)
    assert settings.get_api_base_url() is None


def test_invalid_timeout_falls_back(monkeypatch):
    monkeypatch.setattr(settings, "_secret", lambda section, key: "soon" if key == "timeout" else None)
    assert settings.get_request_timeout() == settings.DEFAULT_TIMEOUT
