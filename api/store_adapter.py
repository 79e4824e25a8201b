"""Adapter between the synchronization layer and the hosted row store.

The hosted project exposes its tables through PostgREST. The adapter is a
thin layer -- it issues single-table select/insert/update/delete calls with
equality filters and turns failed responses into ``RemoteStoreError``.
Row ownership is expressed by the caller through a ``user_id`` filter.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

import httpx

from .exceptions import RemoteStoreError
from .shared.logger import get_logger

logger = get_logger(__name__)

TokenProvider = Callable[[], Optional[str]]


def _filter_params(filters: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """Encode equality filters as PostgREST query parameters."""
    params: list[tuple[str, str]] = []
    for column, value in (filters or {}).items():
        if value is None:
            params.append((column, "is.null"))
        elif isinstance(value, bool):
            params.append((column, f"eq.{str(value).lower()}"))
        else:
            params.append((column, f"eq.{value}"))
    return params


def _error_from_response(response: httpx.Response) -> RemoteStoreError:
    """Build a ``RemoteStoreError`` from a PostgREST error body."""
    payload: dict[str, Any] = {}
    try:
        body = response.json()
        if isinstance(body, dict):
            payload = body
    except ValueError:
        pass
    message = payload.get("message") or response.text or response.reason_phrase or "Remote store error"
    return RemoteStoreError(
        message,
        status_code=response.status_code,
        code=payload.get("code"),
        details=payload.get("details"),
        hint=payload.get("hint"),
    )


class RemoteStore:
    """Row-level CRUD against the hosted PostgREST endpoint.

    Args:
        client: Shared ``httpx.AsyncClient``. The adapter does not own it.
        base_url: Project URL (``https://<ref>.supabase.co``).
        anon_key: Public API key sent with every request.
        token_provider: Returns the signed-in user's access token, if any.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        anon_key: str,
        token_provider: Optional[TokenProvider] = None,
    ) -> None:
        self._client = client
        self._rest_url = f"{base_url.rstrip('/')}/rest/v1"
        self._anon_key = anon_key
        self._token_provider = token_provider

    def _headers(self, prefer: Optional[str] = None) -> dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {token or self._anon_key}",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        params: list[tuple[str, str]],
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        url = f"{self._rest_url}/{table}"
        try:
            response = await self._client.request(
                method, url, params=params, json=json, headers=self._headers(prefer)
            )
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{method} {table} failed: {e}") from e

        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.debug("%s %s -> %d: %s", method, table, response.status_code, error.message)
            raise error

        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        """Select rows matching all equality filters.

        Args:
            table: Table name.
            filters: ``{column: value}`` equality filters.
            order_by: Column to order by.
            descending: Order direction when ``order_by`` is set.
            limit: Maximum number of rows.
            columns: PostgREST column selection.

        Returns:
            List of row dicts (empty when nothing matches).
        """
        params = [("select", columns)] + _filter_params(filters)
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        rows = await self._request("GET", table, params)
        return list(rows or [])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored (with its assigned id)."""
        rows = await self._request(
            "POST", table, [("select", "*")], json=dict(row), prefer="return=representation"
        )
        if not rows:
            raise RemoteStoreError(f"Insert into {table} returned no row")
        return rows[0] if isinstance(rows, list) else rows

    async def update(
        self,
        table: str,
        fields: Mapping[str, Any],
        filters: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        """Apply a partial update to the rows matching ``filters``."""
        if not filters:
            raise ValueError("Refusing to update without filters")
        rows = await self._request(
            "PATCH", table, _filter_params(filters), json=dict(fields), prefer="return=representation"
        )
        return list(rows or [])

    async def delete(self, table: str, filters: Mapping[str, Any]) -> None:
        """Delete the rows matching ``filters``."""
        if not filters:
            raise ValueError("Refusing to delete without filters")
        await self._request("DELETE", table, _filter_params(filters), prefer="return=minimal")
