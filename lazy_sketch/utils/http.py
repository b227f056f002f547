from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, TypedDict

import aiohttp

from .errors import PluginErrorCode, PluginException
from .log import StructuredLogEmitter

logger = logging.getLogger(__name__)
structured_log = StructuredLogEmitter(logger=logger)


class JsonSuccessResponse(TypedDict):
    data: dict[str, Any]
    elapsed_ms: int


@dataclass(slots=True)
class RawHttpResponse:
    status: int
    body: bytes
    headers: dict[str, str]
    elapsed_ms: int


def _mask_headers(headers: dict[str, str]) -> dict[str, str]:
    secret_keys = {"authorization", "cookie", "set-cookie", "x-api-key"}
    masked: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in secret_keys:
            masked[key] = "<redacted>"
            continue
        masked[key] = value
    return masked


def _elapsed_ms(started_at: float) -> int:
    return int((time.perf_counter() - started_at) * 1000)


async def send_request(
    method: str,
    *,
    url: str,
    headers: dict[str, str] | None = None,
    payload: dict[str, Any] | None = None,
    timeout_sec: int = 30,
    source: str = "Upstream",
    log_body: bool = True,
) -> RawHttpResponse:
    """发送 HTTP 请求并返回原始响应。

    约定：
    - 传输层错误映射为 `NETWORK_ERROR/TIMEOUT`
    - 非 2xx HTTP 响应映射为 `UPSTREAM_ERROR`，5xx 与 429 标记为可重试
    - `payload` 不为空时以 JSON 发送
    """
    headers = headers or {}
    if timeout_sec <= 0:
        raise PluginException(
            code=PluginErrorCode.UPSTREAM_ERROR,
            message="timeout_sec must be > 0.",
            retryable=False,
            detail={
                "source": source,
                "url": url,
                "timeout_sec": timeout_sec,
            },
        )

    started_at = time.perf_counter()
    request_error_detail: dict[str, Any] = {
        "source": source,
        "method": method,
        "url": url,
        "timeout_sec": timeout_sec,
        "headers": _mask_headers(headers),
    }
    if payload is not None:
        request_error_detail["payload"] = payload
    structured_log.debug("http.request", request_error_detail)

    # 使用 total timeout，覆盖连接、读写和响应等待总耗时。
    timeout = aiohttp.ClientTimeout(total=timeout_sec)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                method, url, json=payload, headers=headers
            ) as response:
                body = await response.read()
                response_headers = dict(response.headers)
                status = response.status
    except asyncio.TimeoutError as exc:
        raise PluginException(
            code=PluginErrorCode.TIMEOUT,
            message=f"{source} request timed out.",
            retryable=True,
            detail={**request_error_detail, "elapsed_ms": _elapsed_ms(started_at)},
        ) from exc
    except aiohttp.ClientError as exc:
        raise PluginException(
            code=PluginErrorCode.NETWORK_ERROR,
            message=f"Failed to connect to {source}.",
            retryable=True,
            detail={
                **request_error_detail,
                "elapsed_ms": _elapsed_ms(started_at),
                "client_error": str(exc),
                "client_error_type": type(exc).__name__,
            },
        ) from exc

    elapsed_ms = _elapsed_ms(started_at)
    masked_response_headers = _mask_headers(response_headers)
    body_text = body.decode("utf-8", errors="replace") if log_body else body
    structured_log.debug(
        "http.response",
        {
            "elapsed_ms": elapsed_ms,
            "status_code": status,
            "headers": masked_response_headers,
            "body": body_text,
        },
    )
    # HTTP 错误由状态码判断，保留响应片段用于问题定位。
    if status >= 400:
        raise PluginException(
            code=PluginErrorCode.UPSTREAM_ERROR,
            message=f"{source} request failed with status {status}",
            retryable=(status >= 500 or status == 429),
            detail={
                **request_error_detail,
                "elapsed_ms": elapsed_ms,
                "status_code": status,
                "response_headers": masked_response_headers,
                "body": body.decode("utf-8", errors="replace"),
            },
        )

    return RawHttpResponse(
        status=status,
        body=body,
        headers=response_headers,
        elapsed_ms=elapsed_ms,
    )


async def request_json(
    method: str,
    *,
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any] | None = None,
    timeout_sec: int = 30,
    source: str = "Upstream",
) -> JsonSuccessResponse:
    """发送请求并把响应解析为 JSON object。

    成功返回结构：`{"data": <json_object>, "elapsed_ms": <int>}`
    """
    response = await send_request(
        method,
        url=url,
        headers=headers,
        payload=payload,
        timeout_sec=timeout_sec,
        source=source,
    )

    # 网络链路成功后再解析 JSON，便于区分“传输错误”与“响应格式错误”。
    raw_text = response.body.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise PluginException(
            code=PluginErrorCode.UPSTREAM_ERROR,
            message=f"{source} returned invalid JSON.",
            retryable=True,
            detail={
                "source": source,
                "url": url,
                "elapsed_ms": response.elapsed_ms,
                "body": raw_text,
            },
        ) from exc

    if not isinstance(data, dict):
        raise PluginException(
            code=PluginErrorCode.UPSTREAM_ERROR,
            message=f"{source} response must be a JSON object.",
            retryable=True,
            detail={
                "source": source,
                "url": url,
                "elapsed_ms": response.elapsed_ms,
                "response_type": type(data).__name__,
            },
        )

    return {
        "data": data,
        "elapsed_ms": response.elapsed_ms,
    }


async def post_json(
    *,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout_sec: int = 30,
    source: str = "Upstream",
) -> JsonSuccessResponse:
    return await request_json(
        "POST",
        url=url,
        payload=payload,
        headers=headers,
        timeout_sec=timeout_sec,
        source=source,
    )


async def get_json(
    *,
    url: str,
    headers: dict[str, str],
    timeout_sec: int = 30,
    source: str = "Upstream",
) -> JsonSuccessResponse:
    return await request_json(
        "GET",
        url=url,
        headers=headers,
        timeout_sec=timeout_sec,
        source=source,
    )
