"""Map script loader with explicit, injectable loading state.

One MapLoader is created per application and passed to whatever needs the
map API. Concurrent ``load`` calls share a single in-flight request;
transient failures are retried with backoff.
"""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from roadside_tracking.core.exceptions import (
    ConfigurationError,
    NetworkError,
    PermanentError,
    ServiceUnavailableError,
    TrackingError,
)
from roadside_tracking.core.retry import RetryConfig, with_retry
from roadside_tracking.settings import MapsSettings

logger = logging.getLogger(__name__)

SCRIPT_PATH = "/maps/api/js"


class MapScriptError(ServiceUnavailableError):
    """Map script server error or unreachable host (retryable)."""

    pass


class MapLoadTimeoutError(NetworkError):
    """Map script request timed out (retryable)."""

    pass


class MapScriptIncompleteError(PermanentError):
    """Script was served but is unusable (empty body)."""

    pass


@dataclass
class MapLoaderState:
    is_loading: bool = False
    is_loaded: bool = False
    retry_count: int = 0
    last_error: str | None = None


class MapLoader:
    def __init__(self, settings: MapsSettings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self.state = MapLoaderState()
        self.script: str | None = None
        self._client = client
        self._task: asyncio.Task[None] | None = None

    def script_params(self, api_key: str) -> dict[str, str]:
        return {"key": api_key, "libraries": self.settings.libraries}

    async def load(self, api_key: str | None = None) -> None:
        """Load the map script once.

        Raises:
            ConfigurationError: No API key configured, or the key was rejected
            MapScriptError / MapLoadTimeoutError: Retries exhausted
            MapScriptIncompleteError: Script served but empty
        """
        if self.state.is_loaded:
            return

        if self._task is None:
            key = api_key or self.settings.api_key
            if not key:
                raise ConfigurationError(
                    "Maps API key is missing. Set MAPS_API_KEY in the environment."
                )
            self.state.is_loading = True
            self._task = asyncio.ensure_future(self._load_with_retry(key))

        task = self._task
        try:
            await asyncio.shield(task)
        finally:
            if task.done() and self._task is task:
                self._task = None

    async def _load_with_retry(self, api_key: str) -> None:
        config = RetryConfig(
            max_attempts=self.settings.max_retries + 1,
            base_delay=self.settings.retry_base_delay,
        )

        def on_retry(error: Exception, attempt: int) -> None:
            self.state.retry_count = attempt + 1
            self.state.last_error = str(error)

        try:
            self.script = await with_retry(
                lambda: self._fetch(api_key),
                config=config,
                operation_name="map script load",
                on_retry=on_retry,
            )
        except TrackingError as e:
            self.state.last_error = e.message
            raise
        finally:
            self.state.is_loading = False

        self.state.is_loaded = True
        self.state.retry_count = 0
        self.state.last_error = None
        logger.info("Map script loaded (%d bytes)", len(self.script))

    async def _fetch(self, api_key: str) -> str:
        url = f"{self.settings.base_url}{SCRIPT_PATH}"
        try:
            if self._client is not None:
                response = await self._client.get(
                    url, params=self.script_params(api_key), timeout=self.settings.timeout_seconds
                )
            else:
                async with httpx.AsyncClient(timeout=self.settings.timeout_seconds) as client:
                    response = await client.get(url, params=self.script_params(api_key))
        except httpx.TimeoutException as e:
            raise MapLoadTimeoutError(
                f"Map script request timed out after {self.settings.timeout_seconds}s"
            ) from e
        except httpx.NetworkError as e:
            raise MapScriptError(f"Network error loading map script: {e}") from e

        if response.status_code >= 500:
            raise MapScriptError(f"Map script server error: {response.status_code}")
        if response.status_code >= 400:
            raise ConfigurationError(
                f"Map script request rejected: {response.status_code}",
                details={"status_code": response.status_code},
            )

        body = response.text
        if not body.strip():
            raise MapScriptIncompleteError("Map script response was empty")
        return body

    def reset(self) -> None:
        """Forget any loaded script and retry history."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.script = None
        self.state = MapLoaderState()
