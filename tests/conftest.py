from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List
from unittest.mock import Mock

import pytest

from sandbox import HttpResponse

ROOT = Path(__file__).resolve().parents[1]

DEFI_CRITERIA = "Check if submission mentions 'DeFi'."
DEFI_SUBMISSION = "This explains how DeFi is changing banking."


def completion(content: str) -> dict:
    """Corpo mínimo de chat-completions com uma única choice."""
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class FakeHttp:
    """Substitui functions.make_http_request e registra as chamadas."""

    def __init__(self, response: HttpResponse):
        self.response = response
        self.calls: List[dict] = []

    def __call__(self, **kwargs: Any) -> HttpResponse:
        self.calls.append(kwargs)
        return self.response

    @classmethod
    def returning(cls, content: str) -> "FakeHttp":
        return cls(HttpResponse(error=False, status=200, data=completion(content)))


def fake_requests_response(body: Any, status: int = 200) -> Mock:
    text = body if isinstance(body, str) else json.dumps(body)
    r = Mock()
    r.status_code = status
    r.ok = 200 <= status < 400
    r.text = text
    r.content = text.encode("utf-8")
    r.headers = {"Content-Type": "application/json"}
    if isinstance(body, str):
        r.json.side_effect = ValueError("not json")
    else:
        r.json.return_value = body
    return r


@pytest.fixture
def judge_source_text() -> str:
    return (ROOT / "judge_source.py").read_text(encoding="utf-8")


@pytest.fixture
def secrets() -> dict:
    return {"openaiKey": "sk-test"}
