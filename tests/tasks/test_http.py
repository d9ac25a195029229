# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Tests for ease_tasks.http."""

import json

import httpx
import pytest

from ease import Ease
from ease_tasks import http
from ease_tasks.http import RequestError


def transport_for(handler):
    return httpx.MockTransport(handler)


class TestRequest:
    """Tests for the request() helper."""

    @pytest.mark.asyncio
    async def test_parses_json_body(self):
        """Test JSON responses are parsed."""
        def handler(request):
            return httpx.Response(200, json={"ok": True})

        result = await http.request("get", "https://example.test/status", transport=transport_for(handler))
        assert result.status_code == 200
        assert result.ok
        assert result.body == {"ok": True}

    @pytest.mark.asyncio
    async def test_json_content_type_with_charset(self):
        """Test JSON content types with parameters are parsed."""
        def handler(request):
            return httpx.Response(
                200,
                content=b'{"n": 1}',
                headers={"Content-Type": "application/json; charset=utf-8"},
            )

        result = await http.request("GET", "https://example.test/", transport=transport_for(handler))
        assert result.body == {"n": 1}

    @pytest.mark.asyncio
    async def test_text_body(self):
        """Test non-JSON bodies are returned as text."""
        def handler(request):
            return httpx.Response(200, text="plain")

        result = await http.request("GET", "https://example.test/", transport=transport_for(handler))
        assert result.body == "plain"

    @pytest.mark.asyncio
    async def test_bad_json_body(self):
        """Test an invalid JSON body raises RequestError."""
        def handler(request):
            return httpx.Response(200, content=b"{nope", headers={"Content-Type": "application/json"})

        with pytest.raises(RequestError, match="Failed to parse response body!"):
            await http.request("GET", "https://example.test/", transport=transport_for(handler))

    @pytest.mark.asyncio
    async def test_error_status_is_returned(self):
        """Test error statuses are returned, not raised."""
        def handler(request):
            return httpx.Response(503, text="down")

        result = await http.request("GET", "https://example.test/", transport=transport_for(handler))
        assert result.status_code == 503
        assert not result.ok


class TestWebhook:
    """Tests for the webhook() task factory."""

    @pytest.mark.asyncio
    async def test_posts_job_and_payload(self):
        """Test the webhook posts the job name with the payload."""
        seen = []
        messages = []

        def handler(request):
            seen.append((request.method, json.loads(request.content)))
            return httpx.Response(204)

        runner = http.webhook(
            messages.append, "/tmp", "https://example.test/hook",
            payload={"source": "ease"}, transport=transport_for(handler),
        )
        result = await runner("nightly")

        assert seen == [("POST", {"job": "nightly", "source": "ease"})]
        assert result.status_code == 204
        assert messages == ["POST https://example.test/hook -> 204"]

    @pytest.mark.asyncio
    async def test_get_sends_query_params(self):
        """Test GET webhooks send query parameters."""
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200)

        runner = http.webhook(lambda msg: None, "/tmp", "https://example.test/ping",
                              method="GET", transport=transport_for(handler))
        await runner("nightly")
        assert seen == [{"job": "nightly"}]

    @pytest.mark.asyncio
    async def test_non_2xx_fails(self):
        """Test a non-2xx status fails the task."""
        runner = http.webhook(lambda msg: None, "/tmp", "https://example.test/hook",
                              transport=transport_for(lambda request: httpx.Response(500)))
        with pytest.raises(RequestError, match="returned 500"):
            await runner("nightly")

    @pytest.mark.asyncio
    async def test_expected_status(self):
        """Test expect_status requires an exact status."""
        runner = http.webhook(lambda msg: None, "/tmp", "https://example.test/hook", expect_status=201,
                              transport=transport_for(lambda request: httpx.Response(200)))
        with pytest.raises(RequestError, match="expected 201"):
            await runner("nightly")

    @pytest.mark.asyncio
    async def test_installed_webhook(self, tmp_path):
        """Test an installed webhook runs as part of a job."""
        seen = []

        def handler(request):
            seen.append(json.loads(request.content)["job"])
            return httpx.Response(200)

        ease = Ease(config_dirname=tmp_path)
        ease.install("notify", http.webhook, "https://example.test/hook", transport=transport_for(handler))
        ease.job("nightly", ["notify"])

        records = await ease.run_jobs(["nightly"])

        assert records[0].status == "completed"
        assert seen == ["nightly"]
