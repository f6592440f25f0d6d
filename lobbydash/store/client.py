"""REST client for the backing store (PostgREST query style)."""

import logging
from typing import Any, Optional

import httpx

from ..errors import StoreError

logger = logging.getLogger(__name__)


class StoreClient:
    """Async HTTP client for reading dashboard views from the store."""

    def __init__(
        self,
        store_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize store client.

        Args:
            store_url: Store base URL (e.g., https://project.example.co)
            api_key: Anonymous/service API key
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.store_url = store_url
        self.api_key = api_key
        self.rest_url = self._convert_to_rest_url(store_url)
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _convert_to_rest_url(self, base_url: str) -> str:
        """Build the REST endpoint URL from the store base URL."""
        rest_url = base_url
        if not rest_url.endswith("/"):
            rest_url += "/"
        return rest_url + "rest/v1"

    async def connect(self):
        """Open the underlying HTTP connection pool."""
        if self._client is not None:
            return

        logger.info(f"Connecting to store at {self.rest_url}")
        self._client = httpx.AsyncClient(
            base_url=self.rest_url,
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    async def disconnect(self):
        """Close the HTTP connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from store")

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[dict[str, Any]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Select rows from a table or view.

        Args:
            table: Table or view name (e.g., "vw_metas_venda_geral")
            columns: Column list in select syntax
            filters: Equality filters, column -> value
            order: Column to order by
            ascending: Sort direction for ``order``
            limit: Maximum number of rows

        Returns:
            List of row dictionaries

        Raises:
            StoreError: On transport errors, HTTP errors or a non-list payload
        """
        if not self._client:
            raise StoreError("Not connected to store")

        params: dict[str, Any] = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        if limit is not None:
            params["limit"] = str(limit)

        logger.debug(f"Selecting from {table} with {params}")

        try:
            response = await self._client.get(f"/{table}", params=params)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            raise StoreError(
                f"Query on {table} failed with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise StoreError(f"Query on {table} failed: {e}") from e
        except ValueError as e:
            raise StoreError(f"Invalid JSON from {table}: {e}") from e

        if not isinstance(rows, list):
            raise StoreError(f"Unexpected payload from {table}: {rows!r}")

        return rows

    async def select_one(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[dict[str, Any]] = None,
    ) -> Optional[dict]:
        """
        Select at most one row.

        Returns:
            The first matching row, or None when nothing matches
        """
        rows = await self.select(table, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None
