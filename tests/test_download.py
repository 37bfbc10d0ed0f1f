"""Tests for the retrying downloader."""

import httpx
import pytest

from caddroid.core.download import USER_AGENT, Downloader
from caddroid.core.result import InvocationError

URL = "https://f-droid.org/repo/app.apk"


def make_client(
    responses: list[int], body: bytes = b"APK"
) -> tuple[httpx.Client, list]:
    seen: list[httpx.Request] = []
    codes = iter(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(next(codes), content=body)

    return httpx.Client(transport=httpx.MockTransport(handler)), seen


class TestDownloader:
    def test_success(self, indicator, settings, status_lines, tmp_path):
        client, seen = make_client([200])
        output = tmp_path / "apks" / "app.apk"

        ok = Downloader(indicator, settings, client=client).download(URL, output)

        assert ok is True
        assert output.read_bytes() == b"APK"
        assert seen[0].headers["User-Agent"] == USER_AGENT
        assert status_lines() == ["✓ Downloaded app.apk"]
        assert not indicator.running

    def test_retries_then_succeeds(self, indicator, settings, status_lines, tmp_path):
        client, seen = make_client([500, 503, 200])
        output = tmp_path / "app.apk"

        ok = Downloader(indicator, settings, client=client).download(
            URL, output, "Download F-Droid"
        )

        assert ok is True
        assert len(seen) == 3
        assert status_lines() == [
            "⚠ Retry 1/3: app.apk",
            "⚠ Retry 2/3: app.apk",
            "✓ Downloaded app.apk",
        ]

    def test_gives_up_after_attempts(self, indicator, settings, status_lines, tmp_path):
        client, seen = make_client([404, 404, 404])

        ok = Downloader(indicator, settings, client=client).download(
            URL, tmp_path / "app.apk"
        )

        assert ok is False
        assert len(seen) == 3
        assert status_lines()[-1] == "✗ Failed to download app.apk"
        assert len(status_lines()) == 3
        assert not indicator.running

    def test_connection_errors_retried(self, indicator, settings, tmp_path):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("unreachable", request=request)
            return httpx.Response(200, content=b"ok")

        client = httpx.Client(transport=httpx.MockTransport(handler))
        output = tmp_path / "app.apk"

        assert Downloader(indicator, settings, client=client).download(URL, output)
        assert output.read_bytes() == b"ok"

    def test_attempt_budget_from_settings(self, indicator, settings, tmp_path):
        client, seen = make_client([500])
        single = settings.model_copy(update={"download_attempts": 1})

        ok = Downloader(indicator, single, client=client).download(
            URL, tmp_path / "app.apk"
        )

        assert ok is False
        assert len(seen) == 1

    @pytest.mark.parametrize("url,output", [("", "app.apk"), (URL, "")])
    def test_missing_arguments(self, indicator, settings, status_lines, url, output):
        with pytest.raises(InvocationError):
            Downloader(indicator, settings).download(url, output)
        assert status_lines() == []
