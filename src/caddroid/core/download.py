"""File download with retries and a progress indicator."""

import logging
import time
from pathlib import Path

import httpx

from caddroid.core.config import Settings
from caddroid.core.result import InvocationError
from caddroid.utils.progress import Indicator, IndicatorStatus, network_label

logger = logging.getLogger(__name__)

USER_AGENT = "CAD-Droid-Setup/1.0"
CONNECT_TIMEOUT = 10.0


class Downloader:
    """Fetch a URL into a file, retrying a fixed number of times.

    A failed attempt may leave a partial file behind; the next attempt
    overwrites it in place.
    """

    def __init__(
        self,
        indicator: Indicator,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ):
        self.indicator = indicator
        self.settings = settings or Settings()
        self.client = client

    def download(
        self, url: str, output_path: Path | str, description: str = "Download"
    ) -> bool:
        if not url or not output_path:
            raise InvocationError("download: URL and output file required")

        output = Path(output_path).expanduser()
        filename = output.name
        attempts = self.settings.download_attempts

        self.indicator.start(network_label(description, url))

        for attempt in range(1, attempts + 1):
            try:
                self._fetch(url, output)
            except (httpx.HTTPError, OSError) as e:
                logger.debug(
                    "Attempt %d/%d for %s failed: %s", attempt, attempts, url, e
                )
                if attempt < attempts:
                    self.indicator.stop(
                        IndicatorStatus.WARNING,
                        f"Retry {attempt}/{attempts}: {filename}",
                    )
                    time.sleep(self.settings.retry_delay)
                    self.indicator.start(
                        network_label(f"{description} (retry {attempt + 1})", url)
                    )
                continue

            self.indicator.stop(IndicatorStatus.SUCCESS, f"Downloaded {filename}")
            return True

        self.indicator.stop(IndicatorStatus.ERROR, f"Failed to download {filename}")
        return False

    def _fetch(self, url: str, output: Path) -> None:
        if self.client is not None:
            self._stream_to(self.client, url, output)
            return

        timeout = httpx.Timeout(
            self.settings.download_timeout, connect=CONNECT_TIMEOUT
        )
        headers = {"User-Agent": USER_AGENT}
        with httpx.Client(timeout=timeout, headers=headers) as client:
            self._stream_to(client, url, output)

    def _stream_to(self, client: httpx.Client, url: str, output: Path) -> None:
        output.parent.mkdir(parents=True, exist_ok=True)
        with client.stream(
            "GET", url, headers={"User-Agent": USER_AGENT}, follow_redirects=True
        ) as response:
            response.raise_for_status()
            with open(output, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
