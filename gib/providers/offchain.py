"""Off-chain JSON document fetcher (metadata URIs on Arweave, IPFS gateways, etc.)."""

import logging
import time
from typing import Any

import httpx

from ..core.exceptions import DataSourceError, RateLimitError
from ..core.types import DataSource
from .base import BaseProvider

logger = logging.getLogger(__name__)


class OffChainJSONProvider(BaseProvider):
    """Fetches and parses JSON documents referenced by metadata URIs."""

    SOURCE = DataSource.OFFCHAIN_JSON

    def __init__(
        self,
        rate_limit_calls: int = 40,
        rate_limit_period: float = 10.0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            rate_limit_calls=rate_limit_calls,
            rate_limit_period=rate_limit_period,
        )
        self.timeout = timeout
        self._transport = transport

    async def is_available(self) -> bool:
        return True

    async def fetch_json(self, uri: str) -> Any:
        """
        Fetch a JSON document.

        Args:
            uri: HTTP(S) URI of the document

        Returns:
            The parsed JSON value

        Raises:
            DataSourceError: On transport failure, HTTP error or invalid JSON
        """
        await self._wait_for_rate_limit()
        start_time = time.monotonic()

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(uri)

            duration_ms = int((time.monotonic() - start_time) * 1000)

            if response.status_code == 429:
                self._record_audit(
                    action="fetch_json",
                    endpoint=uri,
                    success=False,
                    error_message="Rate limit exceeded",
                    duration_ms=duration_ms,
                )
                raise RateLimitError(source=self.SOURCE.value, endpoint=uri)

            response.raise_for_status()
            document = response.json()

        except httpx.HTTPStatusError as e:
            self._record_audit(action="fetch_json", endpoint=uri, success=False, error_message=str(e))
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"HTTP {e.response.status_code}",
                endpoint=uri,
                status_code=e.response.status_code,
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            self._record_audit(action="fetch_json", endpoint=uri, success=False, error_message=str(e))
            raise DataSourceError(
                source=self.SOURCE.value,
                message=str(e) or type(e).__name__,
                endpoint=uri,
            )
        except ValueError as e:
            self._record_audit(action="fetch_json", endpoint=uri, success=False, error_message="invalid JSON")
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"Invalid JSON document: {e}",
                endpoint=uri,
            )

        self._record_audit(action="fetch_json", endpoint=uri, success=True, duration_ms=duration_ms)
        return document
