"""Base source with httpx, rate limiting, retries, and the source registry."""

from __future__ import annotations

import abc
import asyncio
import logging

import httpx

from radar.config import Settings, get_settings
from radar.errors import FetchError, SourceNotFound
from radar.models import SourceDescriptor

logger = logging.getLogger(__name__)


class BaseSource(abc.ABC):
    """A scrape target. Subclasses describe the site and how to read it."""

    #: Display name, also the ``source`` stamped on stored events.
    name: str = ""

    #: Page to fetch.
    url: str = ""

    fetch_type: str = "static"
    priority: str = "medium"
    active: bool = True

    #: Extraction hints passed to the LLM prompt.
    html_pattern: str | None = None
    date_format: str | None = None
    extract_notes: str | None = None
    instructions: str | None = None
    max_chars: int | None = None

    #: Apply the AI-relevance rule to this source's events.
    check_relevance: bool = False

    #: Minimum seconds between requests.
    rate_limit: float = 1.0

    #: Maximum attempts per request.
    max_retries: int = 2

    #: Backoff factor for retries (seconds multiplied by attempt number).
    retry_backoff: float = 1.0

    def __init__(self, settings: Settings | None = None) -> None:
        if not self.name:
            raise ValueError("Source subclass must set 'name'")
        self.settings = settings or get_settings()
        self._client: httpx.AsyncClient | None = None
        self._last_request: float = 0.0

    @classmethod
    def describe(cls) -> SourceDescriptor:
        return SourceDescriptor(
            name=cls.name,
            url=cls.url,
            fetch_type=cls.fetch_type,
            priority=cls.priority,
            active=cls.active,
            html_pattern=cls.html_pattern,
            date_format=cls.date_format,
            extract_notes=cls.extract_notes,
            instructions=cls.instructions,
            max_chars=cls.max_chars,
            check_relevance=cls.check_relevance,
        )

    @property
    def descriptor(self) -> SourceDescriptor:
        return self.describe()

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": self.settings.user_agent,
                    "Accept-Language": self.settings.accept_language,
                },
                follow_redirects=True,
                timeout=httpx.Timeout(self.settings.fetch_timeout),
            )
        return self._client

    async def _rate_limit_wait(self) -> None:
        now = asyncio.get_running_loop().time()
        elapsed = now - self._last_request
        if self._last_request and elapsed < self.rate_limit:
            await asyncio.sleep(self.rate_limit - elapsed)
        self._last_request = asyncio.get_running_loop().time()

    async def fetch(self, url: str, **kwargs: object) -> httpx.Response:
        """GET *url* with rate limiting and retries.

        The client timeout covers connect and read, so a hung site is
        abandoned (connection closed) after ``fetch_timeout`` seconds.
        """
        client = await self._ensure_client()
        last_exc: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            await self._rate_limit_wait()
            try:
                resp = await client.get(url, **kwargs)  # type: ignore[arg-type]
                resp.raise_for_status()
                return resp
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                last_exc = exc
                logger.warning("[%s] attempt %d for %s failed: %s", self.name, attempt, url, exc)
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_backoff * attempt)
        raise FetchError(
            f"[{self.name}] {url} failed after {self.max_retries} attempts: {last_exc}"
        ) from last_exc

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> BaseSource:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Content contract
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def content(self) -> str:
        """Fetch and return the raw content the LLM should read."""


class PageSource(BaseSource):
    """A source whose events live on a single HTML page."""

    async def content(self) -> str:
        resp = await self.fetch(self.url)
        logger.info("[%s] fetched %d chars", self.name, len(resp.text))
        return resp.text


class ConfiguredSource(PageSource):
    """A page source built at call time from a :class:`SourceDescriptor`."""

    def __init__(self, descriptor: SourceDescriptor, settings: Settings | None = None) -> None:
        self._descriptor = descriptor
        self.name = descriptor.name
        self.url = descriptor.url
        super().__init__(settings)

    @property
    def descriptor(self) -> SourceDescriptor:
        return self._descriptor


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------

_registry: dict[str, type[BaseSource]] = {}


def register(cls: type[BaseSource]) -> type[BaseSource]:
    """Class decorator that registers a source by its *name*."""
    _registry[cls.name] = cls
    return cls


def get_sources() -> dict[str, type[BaseSource]]:
    """Return a copy of the source registry."""
    return dict(_registry)


def get_source(name: str) -> type[BaseSource]:
    """Look up a registered source by name."""
    try:
        return _registry[name]
    except KeyError:
        raise SourceNotFound(name) from None


def active_sources() -> list[type[BaseSource]]:
    return [cls for cls in _registry.values() if cls.active]
