import asyncio
import logging
import math
from typing import Optional, Dict, Any, List
from urllib.parse import urlparse

import httpx

from examgrader.common.errors import ExternalServiceError, JudgeTimeoutError
from examgrader.common.utils import decode_base64, encode_base64
from examgrader.core.config import Settings, get_settings
from .schemas import (
    JudgeCase,
    Judge0SubmissionRequest,
    Judge0ExecutionResult,
    JudgeRunResult,
)

_FIELDS = "token,stdout,stderr,compile_output,message,time,memory,status"


class Judge0Service:
    """Judge0 client owning one pooled ``httpx.AsyncClient``.

    Construct it once per process (the app lifespan does) and ``aclose()`` it on
    shutdown. Tests pass their own ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        # Normalise base URL: prefer configured JUDGE0_BASE_URL
        base = (self.settings.judge0_api_url or "").strip()
        if base and not base.startswith("http://") and not base.startswith("https://"):
            # assume http if scheme omitted
            base = "http://" + base
        # If no explicit port provided on a bare host, default to 2358 (common Judge0 CE port)
        if base:
            parsed = urlparse(base)
            if parsed.scheme == "http" and parsed.port is None and ":" not in parsed.netloc:
                base = parsed._replace(netloc=f"{parsed.netloc}:2358").geturl()
        # strip trailing slash to make joining paths predictable
        self.base_url = base.rstrip("/")
        self.headers = {"Content-Type": "application/json"}
        if self.settings.judge0_api_key and self.settings.judge0_host:
            self.headers.update({
                "X-RapidAPI-Key": self.settings.judge0_api_key,
                "X-RapidAPI-Host": self.settings.judge0_host,
            })
        elif self.settings.judge0_api_key:
            self.headers["X-Auth-Token"] = self.settings.judge0_api_key
        self.poll_attempts = self.settings.judge0_poll_attempts
        self.poll_interval = self.settings.judge0_poll_interval_s
        self._logger = logging.getLogger(__name__)
        timeout = httpx.Timeout(connect=3.0, read=self.settings.judge0_timeout_s, write=5.0, pool=5.0)
        limits = httpx.Limits(max_connections=20, max_keepalive_connections=10)
        self._client = httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Perform one HTTP request against Judge0.

        Transport failures are not retried here; they surface as ExternalServiceError.
        """
        if not self.base_url:
            raise ExternalServiceError("judge_not_configured", "Judge0 base URL is not configured (JUDGE0_BASE_URL).")
        if not path.startswith("/"):
            path = "/" + path
        url = self.base_url + path
        self._logger.debug("Judge0 request: %s %s", method, url)
        try:
            return await self._client.request(method, url, headers=self.headers, **kwargs)
        except httpx.HTTPError as exc:
            raise ExternalServiceError(message=f"Judge0 request failed ({method} {path}): {exc}") from exc

    @staticmethod
    def _ensure_status(payload: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            return payload
        status_val = payload.get("status")
        if not status_val:
            status_id = payload.get("status_id")
            payload = dict(payload)
            payload["status"] = {
                "id": status_id if status_id is not None else 0,
                "description": payload.get("status_description") or "",
            }
        return payload

    @staticmethod
    def _to_wire(case: JudgeCase) -> Dict[str, Any]:
        return Judge0SubmissionRequest(
            source_code=encode_base64(case.source_code) or "",
            language_id=case.language_id,
            stdin=encode_base64(case.stdin),
            expected_output=encode_base64(case.expected_output),
        ).model_dump(exclude_none=True)

    @staticmethod
    def _decode(raw: Judge0ExecutionResult, token: Optional[str] = None) -> JudgeRunResult:
        status = raw.status or {}
        time_seconds: Optional[float] = None
        if raw.time not in (None, ""):
            try:
                time_seconds = float(raw.time)
            except (TypeError, ValueError):
                time_seconds = None
            if time_seconds is not None and not math.isfinite(time_seconds):
                time_seconds = None
        return JudgeRunResult(
            token=raw.token or token,
            status_id=int(status.get("id") or 0),
            status_description=status.get("description") or "",
            stdout=decode_base64(raw.stdout),
            stderr=decode_base64(raw.stderr),
            compile_output=decode_base64(raw.compile_output),
            message=decode_base64(raw.message),
            time_seconds=time_seconds,
            memory_kb=raw.memory,
        )

    def _parse_result(self, response: httpx.Response, token: Optional[str] = None) -> JudgeRunResult:
        try:
            payload = self._ensure_status(response.json())
            raw = Judge0ExecutionResult(**payload)
        except ValueError as exc:
            raise ExternalServiceError(message=f"Malformed Judge0 result: {response.text[:200]}") from exc
        return self._decode(raw, token)

    # -------- Batch operations --------
    async def submit_batch(self, cases: List[JudgeCase]) -> List[str]:
        """Submit multiple executions at once (returns list of tokens in same order)."""
        payload = {"submissions": [self._to_wire(case) for case in cases]}
        resp = await self._request(
            "POST",
            "/submissions/batch?base64_encoded=true&wait=false",
            json=payload,
        )
        if resp.status_code not in (200, 201):
            raise ExternalServiceError(message=f"Batch submit failed: {resp.status_code} {resp.text[:200]}")
        data = resp.json()
        items = data.get("submission_tokens", []) if isinstance(data, dict) else data
        tokens: List[str] = []
        for item in items or []:
            tok = item.get("token") if isinstance(item, dict) else None
            if tok:
                tokens.append(tok)
        if len(tokens) != len(cases):
            raise ExternalServiceError(message="Token count mismatch in batch response")
        self._logger.info("Judge0 batch submitted: %d tokens", len(tokens))
        return tokens

    async def poll_one(self, token: str) -> JudgeRunResult:
        resp = await self._request("GET", f"/submissions/{token}?base64_encoded=true&fields={_FIELDS}")
        if resp.status_code != 200:
            raise ExternalServiceError(
                message=f"Failed to fetch submission result: {resp.status_code} - {resp.text[:200]}"
            )
        return self._parse_result(resp, token)

    async def wait_for(self, token: str) -> JudgeRunResult:
        """Poll ``token`` until terminal; bounded attempts with a fixed delay."""
        for attempt in range(self.poll_attempts):
            result = await self.poll_one(token)
            if result.is_terminal:
                return result
            if attempt < self.poll_attempts - 1:
                await asyncio.sleep(self.poll_interval)
        self._logger.warning("Judge0 token %s not terminal after %d polls", token, self.poll_attempts)
        raise JudgeTimeoutError(message=f"Submission {token} timed out")

    async def execute_batch(self, cases: List[JudgeCase]) -> List[JudgeRunResult]:
        """Submit a batch then poll every token concurrently; results align with ``cases``."""
        if not cases:
            return []
        tokens = await self.submit_batch(cases)
        return list(await asyncio.gather(*(self.wait_for(tok) for tok in tokens)))

    async def submit_synchronous(self, case: JudgeCase) -> JudgeRunResult:
        """Single run with wait=true; Judge0 answers once the run is terminal."""
        resp = await self._request(
            "POST",
            f"/submissions?base64_encoded=true&wait=true&fields={_FIELDS}",
            json=self._to_wire(case),
        )
        # Judge0 may return 200 or 201 for wait=true responses
        if resp.status_code not in (200, 201):
            raise ExternalServiceError(message=f"Failed waited submit: {resp.status_code} {resp.text[:200]}")
        return self._parse_result(resp)
