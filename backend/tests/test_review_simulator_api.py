import time

import pytest
from fastapi.testclient import TestClient

from conftest import TEST_JWT_SECRET, MANUSCRIPT_TEXT, FakeResponse, auth_header, b64, make_token
from main import create_app
from src.config import Settings

PDF_URL = "https://x.myqcloud.com/paper.pdf"
TERMINAL = {"DONE", "FAILED"}


@pytest.fixture
def client(settings, extractor, completion_recorder):
    app = create_app(settings, extractor=extractor)
    with TestClient(app) as client:
        yield client


def _poll(client, task_id, user="user-1", attempts=200):
    body = None
    for _ in range(attempts):
        resp = client.get(f"/lab/review-simulator/tasks/{task_id}", headers=auth_header(user))
        assert resp.status_code == 200
        body = resp.json()["task"]
        if body["status"] in TERMINAL:
            return body
        time.sleep(0.01)
    return body


def _submit(client, payload, user="user-1"):
    return client.post("/lab/review-simulator/tasks", json=payload, headers=auth_header(user))


def test_health(client) -> None:
    assert client.get("/api/health").json() == {"status": "ok"}


def test_unknown_route(client) -> None:
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json()["message"] == "not_found"


def test_pdf_task_reaches_done(client, fake_session, pdf_bytes) -> None:
    fake_session.routes[PDF_URL] = FakeResponse(pdf_bytes)

    resp = _submit(client, {"fileName": "paper.pdf", "fileUrl": PDF_URL})
    assert resp.status_code == 202
    created = resp.json()["task"]
    assert created["status"] == "PENDING"
    assert created["fileName"] == "paper.pdf"
    assert created["error"] is None and created["review"] is None
    assert set(created) == {"taskId", "status", "createdAt", "updatedAt", "fileName", "error", "review"}

    final = _poll(client, created["taskId"])
    assert final["status"] == "DONE"
    assert final["error"] is None
    assert final["review"]["decision"] in {"ACCEPT", "REJECT"}
    assert 0 <= final["review"]["score"] <= 10
    assert final["updatedAt"] >= created["updatedAt"]


def test_task_failure_is_recorded(client) -> None:
    resp = _submit(client, {"fileName": "paper.pdf", "fileUrl": "https://evil.example.com/paper.pdf"})
    assert resp.status_code == 202

    final = _poll(client, resp.json()["task"]["taskId"])
    assert final["status"] == "FAILED"
    assert final["error"] == "invalid_file_url_host"
    assert final["review"] is None


def test_http_url_task_fails_with_protocol_error(client) -> None:
    resp = _submit(client, {"fileName": "paper.pdf", "fileUrl": "http://x.myqcloud.com/paper.pdf"})
    final = _poll(client, resp.json()["task"]["taskId"])
    assert (final["status"], final["error"]) == ("FAILED", "invalid_file_url_protocol")


def test_llm_failure_is_recorded(client, fake_session, completion_recorder) -> None:
    fake_session.routes[PDF_URL] = FakeResponse(MANUSCRIPT_TEXT.encode())
    completion_recorder.reply = "no json at all"

    resp = _submit(client, {"fileName": "paper.txt", "fileUrl": PDF_URL})
    final = _poll(client, resp.json()["task"]["taskId"])
    assert (final["status"], final["error"]) == ("FAILED", "llm_response_invalid")


@pytest.mark.parametrize(
    "payload",
    [{}, {"fileName": "paper.pdf"}, {"fileUrl": PDF_URL}, {"fileName": "  ", "fileUrl": PDF_URL}, {"fileName": 12}],
)
def test_create_task_invalid_payload(client, payload) -> None:
    resp = _submit(client, payload)
    assert resp.status_code == 400
    assert resp.json()["message"] == "invalid_payload"


def test_create_task_unsupported_type(client) -> None:
    resp = _submit(client, {"fileName": "slides.pptx", "fileUrl": PDF_URL})
    assert resp.status_code == 400
    assert resp.json()["message"] == "unsupported_file_type"


def test_task_is_private_to_its_owner(client, fake_session, pdf_bytes) -> None:
    fake_session.routes[PDF_URL] = FakeResponse(pdf_bytes)
    task_id = _submit(client, {"fileName": "paper.pdf", "fileUrl": PDF_URL}).json()["task"]["taskId"]

    resp = client.get(f"/lab/review-simulator/tasks/{task_id}", headers=auth_header("user-2"))
    assert resp.status_code == 404
    assert resp.json()["message"] == "task_not_found"


def test_unknown_task(client) -> None:
    resp = client.get("/lab/review-simulator/tasks/does-not-exist", headers=auth_header("user-1"))
    assert resp.status_code == 404
    assert resp.json()["message"] == "task_not_found"


def test_missing_token(client) -> None:
    resp = client.post("/lab/review-simulator/tasks", json={"fileName": "paper.pdf", "fileUrl": PDF_URL})
    assert resp.status_code == 401
    assert resp.json()["message"] == "missing_token"


def test_invalid_token(client) -> None:
    headers = {"Authorization": f"Bearer {make_token('user-1', secret='another-secret-of-sufficient-length')}"}
    resp = client.get("/lab/review-simulator/tasks/abc", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["message"] == "invalid_token"


# --- synchronous variant ---

def test_sync_review_inline(client, completion_recorder) -> None:
    resp = client.post(
        "/lab/review-simulator",
        json={"fileName": "paper.md", "contentBase64": b64(MANUSCRIPT_TEXT.encode())},
        headers=auth_header("user-1"),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["review"]["decision"] == "ACCEPT"
    assert body["review"]["score"] == 7.5
    assert body["meta"] == {
        "model": "test-model",
        "endpoint": "https://llm.example.com/v1/chat/completions",
        "inputChars": len(MANUSCRIPT_TEXT),
        "fileType": "md",
    }
    assert MANUSCRIPT_TEXT in completion_recorder.calls[0]["messages"][1]["content"]


def test_sync_review_propagates_errors(client) -> None:
    resp = client.post(
        "/lab/review-simulator",
        json={"fileName": "paper.txt", "contentBase64": b64(b"tiny")},
        headers=auth_header("user-1"),
    )
    assert resp.status_code == 400
    assert resp.json() == {"status": 400, "message": "manuscript_content_too_short", "detail": None}


def test_sync_review_upstream_error(client, completion_recorder) -> None:
    completion_recorder.error = ConnectionError("upstream down")
    resp = client.post(
        "/lab/review-simulator",
        json={"fileName": "paper.txt", "contentBase64": b64(MANUSCRIPT_TEXT.encode())},
        headers=auth_header("user-1"),
    )
    assert resp.status_code == 502
    assert resp.json()["message"] == "llm_request_failed"
    assert resp.json()["detail"] == "upstream down"


def test_sync_review_requires_a_source(client) -> None:
    resp = client.post("/lab/review-simulator", json={"fileName": "paper.txt"}, headers=auth_header("user-1"))
    assert resp.status_code == 400
    assert resp.json()["message"] == "invalid_payload"


def test_sync_review_without_llm_key(extractor) -> None:
    settings = Settings(llm={"api_key": ""}, auth={"jwt_secret": TEST_JWT_SECRET})
    with TestClient(create_app(settings, extractor=extractor)) as client:
        resp = client.post(
            "/lab/review-simulator",
            json={"fileName": "paper.txt", "contentBase64": b64(MANUSCRIPT_TEXT.encode())},
            headers=auth_header("user-1"),
        )
    assert resp.status_code == 500
    assert resp.json()["message"] == "llm_config_missing"
