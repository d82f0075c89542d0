"""Provider adapter contract.

Every upstream is wrapped in a ProviderAdapter whose ``search`` never raises
for upstream problems: HTTP errors, bad JSON and missing fields all come back
as a failed ProviderOutcome. Individual malformed records are dropped and
counted instead of failing the whole response.
"""

import logging
import time
from abc import ABC, abstractmethod
from decimal import InvalidOperation
from typing import Any

import httpx
from pydantic import ValidationError

from tripsearch.config import Settings, settings
from tripsearch.errors import AdapterError, FailureKind
from tripsearch.schemas.offer import Offer, ProviderOutcome
from tripsearch.schemas.search import SearchKind, SearchRequest

logger = logging.getLogger(__name__)

# Errors that mean "this one record is unusable"
RECORD_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError, InvalidOperation, ValidationError)


def classify_status(status_code: int) -> FailureKind:
    if status_code in (401, 403):
        return FailureKind.AUTH_ERROR
    if status_code == 429:
        return FailureKind.QUOTA_EXCEEDED
    return FailureKind.UPSTREAM_ERROR


class ProviderAdapter(ABC):
    name: str = ""
    kinds: frozenset[SearchKind] = frozenset()
    priority: int = 0  # higher is tried first
    quality_weight: float = 0.5  # ranking prior, 0-1
    cost_hint: float = 1.0  # relative cost per call
    synthetic: bool = False

    def __init__(self, config: Settings = settings):
        self.config = config

    @property
    def is_configured(self) -> bool:
        return True

    def supports(self, kind: SearchKind) -> bool:
        return kind in self.kinds

    async def search(self, request: SearchRequest) -> ProviderOutcome:
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        if not self.is_configured:
            return ProviderOutcome.failed(self.name, FailureKind.NOT_CONFIGURED, "missing credentials")
        if not self.supports(request.kind):
            return ProviderOutcome.failed(
                self.name, FailureKind.NOT_CONFIGURED, f"{request.kind.value} search not supported"
            )

        try:
            records = await self._fetch(request)
        except AdapterError as e:
            return self._failure(e.kind, str(e), elapsed(), e.status_code)
        except httpx.TimeoutException as e:
            return self._failure(FailureKind.TIMEOUT, f"upstream timed out: {e!r}", elapsed())
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            return self._failure(classify_status(status), f"HTTP {status}", elapsed(), status)
        except httpx.RequestError as e:
            return self._failure(FailureKind.NETWORK_ERROR, f"{type(e).__name__}: {e}", elapsed())
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            return self._failure(FailureKind.MALFORMED_RESPONSE, f"unreadable response: {e}", elapsed())

        offers: list[Offer] = []
        dropped = 0
        for record in records:
            try:
                offers.append(self._parse_record(record, request))
            except RECORD_ERRORS as e:
                dropped += 1
                logger.debug(f"{self.name}: dropped malformed record: {e}")

        latency = elapsed()
        if dropped:
            logger.warning(f"{self.name}: dropped {dropped} of {len(records)} records")
        logger.info(f"{self.name}: {len(offers)} offers for {request.describe()} in {latency}ms")
        return ProviderOutcome(
            provider=self.name,
            offers=offers,
            latency_ms=latency,
            dropped_records=dropped,
            synthetic=self.synthetic,
        )

    def _failure(
        self, kind: FailureKind, message: str, latency_ms: int, status_code: int | None = None
    ) -> ProviderOutcome:
        logger.warning(f"{self.name} failed ({kind.value}): {message}")
        return ProviderOutcome.failed(self.name, kind, message, latency_ms, status_code)

    @abstractmethod
    async def _fetch(self, request: SearchRequest) -> list[Any]:
        """Call the upstream and return its raw offer records."""

    @abstractmethod
    def _parse_record(self, record: Any, request: SearchRequest) -> Offer:
        """Turn one raw record into an Offer, raising on anything malformed."""

    async def close(self):
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} priority={self.priority}>"


class HttpProviderAdapter(ProviderAdapter):
    """Adapter backed by a lazily created httpx.AsyncClient."""

    base_url: str = ""

    def __init__(self, config: Settings = settings, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _default_headers(self) -> dict[str, str]:
        return {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.config.adapter_timeout_seconds(self.name),
                transport=self._transport,
            )
        return self._client

    async def _get_json(self, path: str, params: dict | None = None, headers: dict | None = None) -> Any:
        client = await self._get_client()
        resp = await client.get(path, params=params, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


def expect_list(payload: Any, *path: str) -> list[Any]:
    """Walk ``path`` through nested dicts and return the list found there."""
    node = payload
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise AdapterError(FailureKind.MALFORMED_RESPONSE, f"missing {'.'.join(path)}")
        node = node[key]
    if node is None:
        return []
    if not isinstance(node, list):
        raise AdapterError(FailureKind.MALFORMED_RESPONSE, f"{'.'.join(path) or 'response'} is not a list")
    return node
