"""
HTTP Request executor.

Timeout and retry policy live here, not in the interpreter: each request is
bounded by ``timeoutSeconds`` (or ``settings.http_timeout_s``) and transient
network errors are retried up to ``settings.http_retry_attempts`` times for
idempotent methods only; POST and PATCH are sent at most once.
Non-2xx responses are failures and are not retried. Text and JSON bodies are
decoded leniently; any other body is kept as base64.
"""
from __future__ import annotations

import asyncio
import base64
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from workflow_engine.config import get_settings
from workflow_engine.errors import ExecutorError, HttpRequestError
from workflow_engine.executors.contracts import ExecutorParams, with_variable
from workflow_engine.observability import get_logger, with_trace_context
from workflow_engine.templating import render, resolve, to_text
from workflow_engine.utils import retry_async

logger = get_logger(__name__)

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"})
METHODS_WITHOUT_BODY = frozenset({"GET", "HEAD"})
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE"})
TEXT_CONTENT_MARKERS = ("text/", "json", "xml", "javascript", "x-www-form-urlencoded")
RETRY_BASE_DELAY = 0.5


@dataclass
class HttpResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _decode(raw: bytes, charset: Optional[str]) -> str:
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        # unknown charset label
        return raw.decode("utf-8", errors="replace")


def _parse_body(raw: bytes, content_type: str, charset: Optional[str] = None) -> Any:
    """
    Shape a response body for the run context.

    Text-like bodies (or bodies without a content type) become text, parsed
    as JSON when they look like it. Anything else is stored as
    ``{contentType, encoding: "base64", data}``.
    """
    if not raw:
        return None
    content_type = content_type.lower()
    if content_type and not any(marker in content_type for marker in TEXT_CONTENT_MARKERS):
        return {
            "contentType": content_type.split(";")[0].strip(),
            "encoding": "base64",
            "data": base64.b64encode(raw).decode("ascii"),
        }

    text = _decode(raw, charset)
    if "json" in content_type or text.lstrip()[:1] in ("{", "["):
        try:
            return json.loads(text)
        except (ValueError, RecursionError):
            return text
    return text


async def _send_request(
    method: str,
    url: str,
    *,
    headers: Dict[str, str],
    body: Any = None,
    timeout: float,
) -> HttpResponse:
    """Perform one HTTP request with aiohttp."""
    kwargs: Dict[str, Any] = {"headers": headers}
    if body is not None and method not in METHODS_WITHOUT_BODY:
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        else:
            kwargs["data"] = to_text(body)

    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        async with session.request(method, url, **kwargs) as response:
            raw = await response.read()
            return HttpResponse(
                status=response.status,
                headers=dict(response.headers),
                data=_parse_body(raw, response.headers.get("Content-Type", ""), response.charset),
            )


def _render_headers(raw: Any, context: Dict[str, Any]) -> Dict[str, str]:
    """Headers may be saved as a mapping or as ``[{key, value}]`` rows."""
    headers: Dict[str, str] = {}
    if isinstance(raw, dict):
        items = raw.items()
    elif isinstance(raw, list):
        items = [
            (row.get("key"), row.get("value"))
            for row in raw
            if isinstance(row, dict)
        ]
    else:
        return headers

    for key, value in items:
        if key:
            headers[str(key)] = render(value, context)
    return headers


def _timeout_for(params: ExecutorParams, default: float) -> float:
    raw = params.data.get("timeoutSeconds")
    if raw in (None, ""):
        return default
    value = resolve(raw, params.context)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    raise ExecutorError(f"Invalid timeoutSeconds: {raw!r}", node_id=params.node_id)


async def http_request_executor(params: ExecutorParams) -> Dict[str, Any]:
    """Call ``endpoint`` and store ``{status, ok, headers, data}`` under ``variableName``."""
    settings = params.settings or get_settings()

    endpoint = render(params.data.get("endpoint", ""), params.context).strip()
    if not endpoint:
        raise ExecutorError("HTTP Request node requires an endpoint", node_id=params.node_id)

    method = str(params.data.get("method") or "GET").upper()
    if method not in ALLOWED_METHODS:
        raise ExecutorError(f"Unsupported HTTP method: {method}", node_id=params.node_id)

    headers = _render_headers(params.data.get("headers"), params.context)
    raw_body = params.data.get("body")
    body = resolve(raw_body, params.context) if raw_body not in (None, "") else None
    timeout = _timeout_for(params, settings.http_timeout_s)

    logger.info(
        f"HTTP {method} {endpoint}",
        extra=with_trace_context(
            logger, execution_id=params.execution_id, node_id=params.node_id
        ),
    )

    try:
        response = await retry_async(
            lambda: _send_request(method, endpoint, headers=headers, body=body, timeout=timeout),
            attempts=settings.http_retry_attempts if method in IDEMPOTENT_METHODS else 1,
            base_delay=RETRY_BASE_DELAY,
        )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        detail = str(e) or e.__class__.__name__
        raise HttpRequestError(
            f"HTTP {method} {endpoint} failed: {detail}", node_id=params.node_id
        ) from e

    if not response.ok:
        raise HttpRequestError(
            f"HTTP {method} {endpoint} returned status {response.status}",
            status=response.status,
            node_id=params.node_id,
        )

    return with_variable(
        params.context,
        params.variable_name,
        {
            "status": response.status,
            "ok": response.ok,
            "headers": response.headers,
            "data": response.data,
        },
    )


__all__ = [
    "HttpResponse",
    "http_request_executor",
]
