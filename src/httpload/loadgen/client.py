from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Mapping

import httpx

from httpload.config.models import Body
from httpload.metrics import TIMEOUT_ERROR, SampleRecord, StepKind

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class ClientResponse:
    sample: SampleRecord
    content: bytes = b""

    @property
    def success(self) -> bool:
        return self.sample.ok


def encode_body(body: Body, headers: Mapping[str, str]) -> tuple[str | None, dict[str, str]]:
    request_headers = dict(headers)
    if body is None:
        return None, request_headers
    if isinstance(body, str):
        return body, request_headers
    if not any(name.lower() == "content-type" for name in request_headers):
        request_headers["Content-Type"] = JSON_CONTENT_TYPE
    return json.dumps(body), request_headers


def is_ok_status(status_code: int) -> bool:
    return 200 <= status_code < 400


async def execute_request(
    client: httpx.AsyncClient,
    url: str,
    method: str,
    headers: Mapping[str, str],
    body: Body,
    timeout_sec: float,
    kind: StepKind = StepKind.REQUEST,
) -> ClientResponse:
    content, request_headers = encode_body(body, headers)
    start_wall = time.time()
    start_mono = time.perf_counter()
    try:
        async with asyncio.timeout(timeout_sec):
            resp = await client.request(
                method,
                url,
                headers=request_headers,
                content=content,
                timeout=timeout_sec,
            )
    except (TimeoutError, httpx.TimeoutException):
        error = TIMEOUT_ERROR
    except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
        error = str(exc) or type(exc).__name__
        logger.debug("%s %s failed: %s", method, url, error)
    else:
        end_mono = time.perf_counter()
        sample = SampleRecord(
            kind=kind,
            start=start_mono,
            end=end_mono,
            wall_time=start_wall,
            latency_ms=(end_mono - start_mono) * 1000.0,
            ok=is_ok_status(resp.status_code),
            status_code=resp.status_code,
            error=None,
            response_size=len(resp.content or b""),
        )
        return ClientResponse(sample=sample, content=resp.content or b"")
    end_mono = time.perf_counter()
    sample = SampleRecord(
        kind=kind,
        start=start_mono,
        end=end_mono,
        wall_time=start_wall,
        latency_ms=(end_mono - start_mono) * 1000.0,
        ok=False,
        status_code=None,
        error=error,
        response_size=None,
    )
    return ClientResponse(sample=sample)
