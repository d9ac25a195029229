"""HTTP request helper and webhook tasks.

Implementation rules enforced here:
- Never print; report through the log function handed to the factory
- Never read global config or environment
- Side effects: HTTP calls only

Transport: httpx.AsyncClient. Tests pass an httpx.MockTransport through
the `transport` argument.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

# I/O declaration for static analysis and auditing
__io__ = {
    "reads": [],
    "writes": [],
    "external": ["http"],
}

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx

LogFn = Callable[[str], None]

DEFAULT_TIMEOUT = 30.0


class RequestError(Exception):
    """A response could not be used (bad JSON body or unexpected status)."""
    pass


@dataclass
class HttpResult:
    """Response summary.

    Attributes:
        status_code: HTTP status
        headers: Response headers (lower-cased names)
        body: Parsed JSON when the content type is JSON, otherwise text
    """
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _is_json(content_type: str) -> bool:
    return content_type.split(";")[0].strip().lower() == "application/json"


async def request(
    method: str,
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> HttpResult:
    """
    Send one HTTP request.

    Extra keyword arguments (json, params, headers, content, ...) go to
    httpx.AsyncClient.request. Non-2xx statuses are returned, not raised.

    Raises:
        RequestError: If a JSON response body cannot be parsed
        httpx.HTTPError: On transport failures
    """
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.request(method.upper(), url, **kwargs)

    headers = {name.lower(): value for name, value in response.headers.items()}
    body: Any = response.text
    if _is_json(headers.get("content-type", "")):
        try:
            body = json.loads(response.text)
        except json.JSONDecodeError as e:
            raise RequestError(f"Failed to parse response body!\n{e}") from e

    return HttpResult(status_code=response.status_code, headers=headers, body=body)


def webhook(
    log: LogFn,
    dirname: str,
    url: str,
    method: str = "POST",
    payload: Optional[Dict[str, Any]] = None,
    expect_status: Optional[int] = None,
    headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """
    Build a task runner that calls a URL with {"job": job_name, **payload}.

    GET requests send the payload as query parameters, every other method
    as a JSON body.

    Args:
        log: Message sink (Ease.log)
        dirname: Directory of the easeconfig file (unused)
        url: Target URL
        method: HTTP method
        payload: Extra fields sent with the job name
        expect_status: Exact status required; default is any 2xx
        headers: Extra request headers
        transport: httpx transport override

    Returns:
        Coroutine function taking the job name and returning the HttpResult
    """

    async def runner(job_name: str) -> HttpResult:
        data = {"job": job_name, **(payload or {})}
        options: Dict[str, Any] = {"headers": headers or {}}
        if method.upper() == "GET":
            options["params"] = data
        else:
            options["json"] = data

        result = await request(method, url, transport=transport, **options)

        if expect_status is not None:
            if result.status_code != expect_status:
                raise RequestError(
                    f"{method.upper()} {url} returned {result.status_code}, expected {expect_status}"
                )
        elif not result.ok:
            raise RequestError(f"{method.upper()} {url} returned {result.status_code}")

        log(f"{method.upper()} {url} -> {result.status_code}")
        return result

    return runner
