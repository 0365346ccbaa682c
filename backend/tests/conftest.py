import base64
from types import SimpleNamespace
from typing import Dict, List, Optional

import jwt
import pytest
import requests

from src.config import ManuscriptConfig, Settings
from src.service.manuscript_service import ManuscriptExtractor
from src.service.pdf_download_service import ManuscriptDownloader

TEST_JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"

MANUSCRIPT_TEXT = (
    "Attention Is Mostly What You Need. We study sparse attention for long documents "
    "and show that a simple routing scheme keeps accuracy while cutting memory by half. "
    "Experiments on three benchmarks support the claim."
)

LLM_REPLY = (
    '{"decision": "ACCEPT", "score": 7.5, "summary": "Solid empirical paper.", '
    '"strengths": ["clear method", "good ablations"], '
    '"weaknesses": ["small datasets"], "suggestions": ["add baselines"]}'
)


class FakeResponse:
    def __init__(self, body: bytes = b"", status_code: int = 200, headers: Optional[Dict[str, str]] = None):
        self.body = body
        self.status_code = status_code
        self.headers = headers if headers is not None else {"Content-Length": str(len(body))}
        self.closed = False

    def iter_content(self, chunk_size: int = 1024):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Stands in for requests.Session: maps URL -> FakeResponse (or an exception)."""

    def __init__(self, routes: Optional[Dict[str, object]] = None):
        self.routes = routes or {}
        self.calls: List[dict] = []

    def get(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route for {url}")
        if isinstance(route, Exception):
            raise route
        return route


def _pdf_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def make_pdf(lines: List[str]) -> bytes:
    """Build a one-page PDF with Helvetica text lines and a correct xref table."""
    ops = ["BT", "/F1 11 Tf", "14 TL", "72 720 Td"]
    for line in lines:
        ops.append(f"({_pdf_escape(line)}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


PDF_LINES = [
    "Sparse Routing for Long Document Attention",
    "We propose a routing scheme that assigns each token to a small set of",
    "memory slots, reducing attention cost from quadratic to near linear while",
    "keeping accuracy on summarization and question answering benchmarks.",
    "Ablations show the routing temperature matters more than slot count.",
]


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_token(user_id: str, secret: str = TEST_JWT_SECRET) -> str:
    return jwt.encode({"sub": user_id}, secret, algorithm="HS256")


def auth_header(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def fake_completion(content):
    """A chat-completions payload shaped like the OpenAI wire format."""
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def manuscript_config():
    return ManuscriptConfig()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def extractor(manuscript_config, fake_session):
    downloader = ManuscriptDownloader(
        allowed_host_suffixes=manuscript_config.allowed_host_suffixes,
        max_bytes=manuscript_config.max_remote_bytes,
        session=fake_session,
    )
    return ManuscriptExtractor(manuscript_config, downloader=downloader)


@pytest.fixture
def settings():
    return Settings(
        llm={"api_key": "test-key", "base_url": "https://llm.example.com/v1", "model": "test-model"},
        auth={"jwt_secret": TEST_JWT_SECRET},
    )


@pytest.fixture
def pdf_bytes():
    return make_pdf(PDF_LINES)


@pytest.fixture
def completion_recorder(monkeypatch):
    """Patch litellm.acompletion; returns the list of recorded call kwargs."""
    import litellm

    state = SimpleNamespace(calls=[], reply=LLM_REPLY, error=None)

    async def _fake_acompletion(**kwargs):
        state.calls.append(kwargs)
        if state.error is not None:
            raise state.error
        return fake_completion(state.reply)

    monkeypatch.setattr(litellm, "acompletion", _fake_acompletion)
    return state
