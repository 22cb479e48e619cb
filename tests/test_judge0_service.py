import asyncio
import base64
import json

import httpx
import pytest

from examgrader.common.errors import ExternalServiceError, JudgeTimeoutError
from examgrader.features.judge0.schemas import JudgeCase
from examgrader.features.judge0.service import Judge0Service


def _b64(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _unb64(text):
    return base64.b64decode(text).decode("utf-8")


def _service(settings, handler):
    return Judge0Service(settings, transport=httpx.MockTransport(handler))


def test_base_url_normalisation(settings):
    settings.judge0_api_url = "judge.internal"
    service = Judge0Service(settings)
    assert service.base_url == "http://judge.internal:2358"

    settings.judge0_api_url = "https://judge0-ce.p.rapidapi.com/"
    settings.judge0_api_key = "k"
    settings.judge0_host = "judge0-ce.p.rapidapi.com"
    service = Judge0Service(settings)
    assert service.base_url == "https://judge0-ce.p.rapidapi.com"
    assert service.headers["X-RapidAPI-Key"] == "k"
    assert service.headers["X-RapidAPI-Host"] == "judge0-ce.p.rapidapi.com"


def test_batch_encodes_fields_and_returns_tokens_in_order(settings):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"token": "t1"}, {"token": "t2"}])

    service = _service(settings, handler)
    cases = [
        JudgeCase(source_code="print(input())", language_id=71, stdin="héllo", expected_output="héllo"),
        JudgeCase(source_code="print(input())", language_id=71, stdin="x", expected_output="x"),
    ]

    tokens = asyncio.run(service.submit_batch(cases))

    assert tokens == ["t1", "t2"]
    assert "base64_encoded=true" in seen["url"]
    first = seen["body"]["submissions"][0]
    assert _unb64(first["source_code"]) == "print(input())"
    assert _unb64(first["stdin"]) == "héllo"
    assert _unb64(first["expected_output"]) == "héllo"
    assert first["language_id"] == 71


def test_batch_token_mismatch_is_external_error(settings):
    service = _service(settings, lambda request: httpx.Response(201, json=[{"token": "only-one"}]))
    cases = [JudgeCase(source_code="x", language_id=71), JudgeCase(source_code="y", language_id=71)]

    with pytest.raises(ExternalServiceError):
        asyncio.run(service.submit_batch(cases))


def test_poll_decodes_base64_fields(settings):
    def handler(request: httpx.Request):
        return httpx.Response(
            200,
            json={
                "token": "t1",
                "stdout": _b64("3\n"),
                "stderr": None,
                "compile_output": None,
                "message": None,
                "time": "0.015",
                "memory": 2048,
                "status": {"id": 3, "description": "Accepted"},
            },
        )

    result = asyncio.run(_service(settings, handler).poll_one("t1"))

    assert result.stdout == "3\n"
    assert result.status_id == 3
    assert result.time_seconds == pytest.approx(0.015)
    assert result.memory_kb == 2048
    assert result.is_terminal


def test_execute_batch_polls_until_terminal(settings):
    polls = {"t1": 0, "t2": 0}

    def handler(request: httpx.Request):
        if request.method == "POST":
            return httpx.Response(201, json=[{"token": "t1"}, {"token": "t2"}])
        token = request.url.path.rsplit("/", 1)[-1]
        polls[token] += 1
        status_id = 3 if polls[token] >= (3 if token == "t1" else 1) else 2
        return httpx.Response(200, json={"token": token, "time": "0.01", "status": {"id": status_id}})

    service = _service(settings, handler)
    results = asyncio.run(
        service.execute_batch([JudgeCase(source_code="a", language_id=71), JudgeCase(source_code="b", language_id=71)])
    )

    assert [r.token for r in results] == ["t1", "t2"]
    assert polls == {"t1": 3, "t2": 1}


def test_poll_bound_raises_timeout(settings):
    calls = {"n": 0}

    def handler(request: httpx.Request):
        calls["n"] += 1
        return httpx.Response(200, json={"token": "t1", "status": {"id": 1, "description": "In Queue"}})

    service = _service(settings, handler)

    with pytest.raises(JudgeTimeoutError):
        asyncio.run(service.wait_for("t1"))
    assert calls["n"] == settings.judge0_poll_attempts


def test_poll_attempts_are_clamped(monkeypatch):
    from examgrader.core.config import Settings

    monkeypatch.setenv("JUDGE0_POLL_ATTEMPTS", "5")
    assert Settings().judge0_poll_attempts == 30
    monkeypatch.setenv("JUDGE0_POLL_ATTEMPTS", "100")
    assert Settings().judge0_poll_attempts == 40


def test_transport_failure_is_external_error(settings):
    def handler(request: httpx.Request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ExternalServiceError):
        asyncio.run(_service(settings, handler).poll_one("t1"))


def test_unconfigured_judge_is_external_error(settings):
    settings.judge0_api_url = ""
    service = Judge0Service(settings)

    with pytest.raises(ExternalServiceError) as exc:
        asyncio.run(service.submit_synchronous(JudgeCase(source_code="x", language_id=71)))
    assert exc.value.error_code == "judge_not_configured"


def test_synchronous_submit_waits(settings):
    def handler(request: httpx.Request):
        assert "wait=true" in str(request.url)
        body = json.loads(request.content)
        assert _unb64(body["stdin"]) == "3\n1 2 3"
        return httpx.Response(201, json={"time": 0.25, "status": {"id": 3, "description": "Accepted"}})

    result = asyncio.run(
        _service(settings, handler).submit_synchronous(JudgeCase(source_code="x", language_id=71, stdin="3\n1 2 3"))
    )
    assert result.time_seconds == pytest.approx(0.25)
