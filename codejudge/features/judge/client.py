from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse, urlunparse

import httpx

from codejudge.common.errors import DispatchError, JudgeFetchError
from codejudge.core.config import JudgeConfig

from .schemas import (
    CoarseStatus,
    DispatchRequest,
    Judge0SubmissionRequest,
    JudgeVerdict,
    RawJudgeResult,
    SphereSubmissionRequest,
)

logger = logging.getLogger(__name__)

_REDACTED_HEADERS = {"x-rapidapi-key", "authorization"}


def _mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: ("[REDACTED]" if k.lower() in _REDACTED_HEADERS else v) for k, v in (headers or {}).items()}


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class JudgeClient:
    """Transport wrapper around an external judge.

    Two operations only: ``dispatch`` submits source + aggregated input and returns the judge's
    handle; ``fetch`` returns the current provider-neutral snapshot for a handle. Correctness is
    not interpreted here.
    """

    provider = "generic"

    def __init__(self, config: JudgeConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.config = config
        self.base_url = self._normalise_base_url(config.base_url)
        self.headers = self._build_headers(config)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._lock = asyncio.Lock()

    # -------- lifecycle --------
    @staticmethod
    def _normalise_base_url(raw: str) -> str:
        base = (raw or "").strip()
        if base and not base.startswith(("http://", "https://")):
            base = "http://" + base
        return base.rstrip("/")

    def _build_headers(self, config: JudgeConfig) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def start(self) -> None:
        if self._client is not None:
            return
        async with self._lock:
            if self._client is None:
                timeout = httpx.Timeout(connect=3.0, read=self.config.timeout_s, write=5.0, pool=5.0)
                limits = httpx.Limits(max_connections=20, max_keepalive_connections=10)
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    headers=self.headers,
                    timeout=timeout,
                    limits=limits,
                    transport=self._transport,
                )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, *, retry_connect: bool = False, **kwargs) -> httpx.Response:
        """Perform one HTTP call against the judge.

        Connection-level failures (the request never reached the judge) are retried with a short
        linear back-off only when ``retry_connect`` is set; every other failure propagates.
        """
        if not self.base_url:
            raise httpx.InvalidURL("Judge base URL is not configured (JUDGE_BASE_URL).")
        if not path.startswith("/"):
            path = "/" + path
        await self.start()
        assert self._client is not None
        logger.debug("Judge request: %s %s%s headers=%s", method, self.base_url, path, _mask_headers(self.headers))
        attempts = self.config.connect_retries if retry_connect else 1
        for attempt in range(attempts):
            try:
                return await self._client.request(method, path, **kwargs)
            except (httpx.ConnectTimeout, httpx.ConnectError) as exc:
                if attempt < attempts - 1:
                    backoff = 0.5 * (attempt + 1)
                    logger.warning("Judge connect failed (%s), retrying in %.1fs", exc, backoff)
                    await asyncio.sleep(backoff)
                    continue
                raise
        raise RuntimeError("unreachable")  # pragma: no cover

    # -------- contract --------
    async def dispatch(self, request: DispatchRequest) -> str:
        try:
            response = await self._request("POST", self._dispatch_path(), json=self._dispatch_payload(request))
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DispatchError(f"Judge unreachable at {self.base_url}: {exc}") from exc
        if response.status_code not in (200, 201):
            raise DispatchError(f"Judge rejected submission: {response.status_code} {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as exc:
            raise DispatchError(f"Judge returned non-JSON dispatch response: {response.text[:200]}") from exc
        handle = self._extract_handle(data)
        if not handle:
            raise DispatchError("Judge dispatch response did not contain a handle")
        logger.info("judge.dispatch provider=%s handle=%s runtime=%s", self.provider, handle, request.runtime_id)
        return handle

    async def fetch(self, handle: str) -> RawJudgeResult:
        try:
            response = await self._request("GET", self._fetch_path(handle), retry_connect=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise JudgeFetchError(f"Failed to reach judge for {handle}: {exc}") from exc
        if response.status_code != 200:
            raise JudgeFetchError(f"Failed to fetch judge result: {response.status_code} - {response.text[:200]}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise JudgeFetchError(f"Judge returned non-JSON result: {response.text[:200]}") from exc
        if not isinstance(payload, dict):
            raise JudgeFetchError("Judge result payload is not an object")
        return self._parse_result(handle, payload)

    # -------- provider hooks --------
    def _dispatch_path(self) -> str:
        raise NotImplementedError

    def _dispatch_payload(self, request: DispatchRequest) -> Dict[str, Any]:
        raise NotImplementedError

    def _extract_handle(self, data: Any) -> Optional[str]:
        raise NotImplementedError

    def _fetch_path(self, handle: str) -> str:
        raise NotImplementedError

    def _parse_result(self, handle: str, payload: Dict[str, Any]) -> RawJudgeResult:
        raise NotImplementedError


class Judge0Client(JudgeClient):
    """Judge0 CE / RapidAPI flavour: handle is the submission token."""

    provider = "judge0"

    RESULT_FIELDS = "token,stdout,stderr,compile_output,message,status,status_id,time,memory"

    _VERDICTS = {
        3: JudgeVerdict.accepted,
        4: JudgeVerdict.wrong_answer,
        5: JudgeVerdict.time_limit_exceeded,
        6: JudgeVerdict.compilation_error,
    }

    def __init__(self, config: JudgeConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(config, transport=transport)
        # If no explicit port is given, default to 2358 (Judge0 CE) unless behind RapidAPI
        if self.base_url and not config.host:
            parsed = urlparse(self.base_url)
            if ":" not in parsed.netloc:
                self.base_url = urlunparse(parsed._replace(netloc=f"{parsed.netloc}:2358"))

    def _build_headers(self, config: JudgeConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.api_key and config.host:
            headers.update({"X-RapidAPI-Key": config.api_key, "X-RapidAPI-Host": config.host})
        elif config.api_key:
            headers["X-Auth-Token"] = config.api_key
        return headers

    def _dispatch_path(self) -> str:
        return "/submissions?base64_encoded=false&wait=false"

    def _dispatch_payload(self, request: DispatchRequest) -> Dict[str, Any]:
        return Judge0SubmissionRequest(
            source_code=request.source_code,
            language_id=request.runtime_id,
            stdin=request.stdin,
        ).model_dump(exclude_none=True)

    def _extract_handle(self, data: Any) -> Optional[str]:
        if isinstance(data, dict):
            token = data.get("token")
            return str(token) if token else None
        return None

    def _fetch_path(self, handle: str) -> str:
        return f"/submissions/{handle}?base64_encoded=false&fields={self.RESULT_FIELDS}"

    @staticmethod
    def _status_id(payload: Dict[str, Any]) -> Optional[int]:
        status_val = payload.get("status")
        if isinstance(status_val, dict) and status_val.get("id") is not None:
            return _to_int(status_val.get("id"))
        return _to_int(payload.get("status_id"))

    def _parse_result(self, handle: str, payload: Dict[str, Any]) -> RawJudgeResult:
        status_id = self._status_id(payload)
        if status_id is None:
            raise JudgeFetchError(f"Judge0 result for {handle} is missing a status")
        if status_id == 1:
            coarse = CoarseStatus.queued
        elif status_id == 2:
            coarse = CoarseStatus.running
        elif status_id == 13:
            coarse = CoarseStatus.error
        elif 3 <= status_id <= 14:
            coarse = CoarseStatus.finished
        else:
            raise JudgeFetchError(f"Judge0 returned unknown status id {status_id} for {handle}")

        verdict = JudgeVerdict.unknown
        compile_error = None
        runtime_error = None
        if coarse is CoarseStatus.finished:
            verdict = self._VERDICTS.get(status_id, JudgeVerdict.runtime_error)
            if verdict is JudgeVerdict.compilation_error:
                compile_error = payload.get("compile_output") or payload.get("message") or "Compilation failed"
            elif verdict is JudgeVerdict.runtime_error:
                runtime_error = payload.get("stderr") or payload.get("message") or "Runtime error"

        time_s = _to_float(payload.get("time"))
        status_desc = payload.get("status", {}).get("description") if isinstance(payload.get("status"), dict) else None
        return RawJudgeResult(
            handle=handle,
            coarse_status=coarse,
            verdict=verdict,
            output=payload.get("stdout"),
            time_ms=time_s * 1000.0 if time_s is not None else None,
            memory_kb=_to_int(payload.get("memory")),
            compile_error=compile_error,
            runtime_error=runtime_error,
            message=payload.get("message") or status_desc,
            raw=payload,
        )


class SphereEngineClient(JudgeClient):
    """Sphere Engine style flavour: handle is the judge-side submission id."""

    provider = "sphere"

    _COARSE = {
        "pending": CoarseStatus.queued,
        "queued": CoarseStatus.queued,
        "waiting": CoarseStatus.queued,
        "running": CoarseStatus.running,
        "compiling": CoarseStatus.running,
        "processing": CoarseStatus.running,
        "finished": CoarseStatus.finished,
        "ready": CoarseStatus.finished,
        "done": CoarseStatus.finished,
        "error": CoarseStatus.error,
    }

    _VERDICTS = {
        "accepted": JudgeVerdict.accepted,
        "ok": JudgeVerdict.accepted,
        "wrong_answer": JudgeVerdict.wrong_answer,
        "wrong answer": JudgeVerdict.wrong_answer,
        "time_limit_exceeded": JudgeVerdict.time_limit_exceeded,
        "time limit exceeded": JudgeVerdict.time_limit_exceeded,
        "memory_limit_exceeded": JudgeVerdict.memory_limit_exceeded,
        "memory limit exceeded": JudgeVerdict.memory_limit_exceeded,
        "runtime_error": JudgeVerdict.runtime_error,
        "runtime error": JudgeVerdict.runtime_error,
        "compilation_error": JudgeVerdict.compilation_error,
        "compilation error": JudgeVerdict.compilation_error,
    }

    def _build_headers(self, config: JudgeConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    def _dispatch_path(self) -> str:
        return "/submissions"

    def _dispatch_payload(self, request: DispatchRequest) -> Dict[str, Any]:
        return SphereSubmissionRequest(
            source=request.source_code,
            language=request.runtime_id,
            input=request.stdin,
        ).model_dump()

    def _extract_handle(self, data: Any) -> Optional[str]:
        if isinstance(data, dict) and data.get("id") is not None:
            return str(data["id"])
        return None

    def _fetch_path(self, handle: str) -> str:
        return f"/submissions/{handle}"

    @staticmethod
    def _name(value: Any) -> Optional[str]:
        if isinstance(value, dict):
            value = value.get("name") or value.get("code")
        if value is None:
            return None
        return str(value).strip().lower()

    def _parse_result(self, handle: str, payload: Dict[str, Any]) -> RawJudgeResult:
        coarse_name = self._name(payload.get("status"))
        coarse = self._COARSE.get(coarse_name or "")
        if coarse is None:
            raise JudgeFetchError(f"Judge returned unknown status {coarse_name!r} for {handle}")

        result = payload.get("result") if isinstance(payload.get("result"), dict) else {}
        verdict = JudgeVerdict.unknown
        if coarse is CoarseStatus.finished:
            verdict = self._VERDICTS.get(self._name(result.get("status")) or "", JudgeVerdict.unknown)
        compile_error = result.get("compile_error") or None
        runtime_error = result.get("runtime_error") or None
        if coarse is CoarseStatus.error and runtime_error is None:
            runtime_error = payload.get("stderr") or None

        return RawJudgeResult(
            handle=handle,
            coarse_status=coarse,
            verdict=verdict,
            output=payload.get("output"),
            time_ms=_to_float(result.get("time")),
            memory_kb=_to_int(result.get("memory")),
            compile_error=compile_error,
            runtime_error=runtime_error,
            message=payload.get("message"),
            raw=payload,
        )


_PROVIDERS = {
    Judge0Client.provider: Judge0Client,
    SphereEngineClient.provider: SphereEngineClient,
}


def build_judge_client(config: JudgeConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> JudgeClient:
    try:
        cls = _PROVIDERS[config.provider]
    except KeyError:
        raise ValueError(f"Unknown JUDGE_PROVIDER {config.provider!r}; expected one of {sorted(_PROVIDERS)}")
    return cls(config, transport=transport)
