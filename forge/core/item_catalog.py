"""
Item catalog client - search externally sourced reference images by name or id.

Searches go through the host-application bridge when one is connected and
fall back to the public catalog REST API otherwise.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from .constants import (
    CATALOG_API_BASE,
    CATALOG_CDN_BASE,
    CATALOG_DEFAULT_LIMIT,
    CATALOG_MAX_LIMIT,
    CATALOG_SEARCH_FETCH_LIMIT,
    FETCH_TIMEOUT_SECONDS,
)
from .errors import CatalogError

logger = logging.getLogger(__name__)


def _json_object(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        raise CatalogError("Catalog API returned a non-JSON body")
    if not isinstance(data, dict):
        raise CatalogError("Catalog API returned an unexpected body")
    return data


class ItemCatalogClient:
    """Search / lookup against the item catalog."""

    def __init__(
        self,
        api_base: str = CATALOG_API_BASE,
        cdn_base: str = CATALOG_CDN_BASE,
        bridge: Optional[Any] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.cdn_base = cdn_base.rstrip("/")
        self.bridge = bridge
        self.session = session or requests.Session()

    def to_catalog_item(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        item_id = raw.get("item_id") or raw.get("id")
        return {
            "id": item_id,
            "name": raw.get("item_name") or raw.get("name") or item_id,
            "category": raw.get("category"),
            "rarity": raw.get("rarity"),
            "imageUrl": raw.get("imageUrl") or f"{self.cdn_base}/{item_id}.png",
        }

    def _get_items(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(f"{self.api_base}/items", params=params, timeout=FETCH_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            raise CatalogError(f"Catalog API error: {e}")
        if not response.ok:
            raise CatalogError(f"Catalog API error: {response.status_code}")
        return _json_object(response).get("items") or []

    def search_sync(
        self,
        query: str = "",
        category: Optional[str] = None,
        rarity: Optional[str] = None,
        limit: int = CATALOG_DEFAULT_LIMIT,
        starts_after: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Query the REST API; a text query matches item names and item ids."""
        limit = max(1, min(limit, CATALOG_MAX_LIMIT))
        search_query = (query or "").strip().lower()

        base_params: Dict[str, Any] = {"sort_order": "desc"}
        if category:
            base_params["category"] = category
        if rarity:
            base_params["rarity"] = rarity

        params = dict(base_params)
        if starts_after:
            params["starts_after"] = starts_after
        params["limit"] = CATALOG_SEARCH_FETCH_LIMIT if search_query else limit
        if search_query:
            params["item_name"] = search_query

        items = self._get_items(params)

        if search_query:
            # Name search misses id matches; scan an unfiltered page as well
            seen = {item.get("item_id") for item in items}
            try:
                id_items = self._get_items({**base_params, "limit": CATALOG_SEARCH_FETCH_LIMIT})
            except CatalogError as e:
                logger.warning(f"Catalog id scan failed: {e}")
                id_items = []
            for item in id_items:
                if item.get("item_id") not in seen:
                    items.append(item)
                    seen.add(item.get("item_id"))

            items = [
                item for item in items
                if search_query in (item.get("item_id") or "").lower()
                or search_query in (item.get("item_name") or "").lower()
            ]

        results = [self.to_catalog_item(item) for item in items[:limit]]
        return {
            "items": results,
            "hasMore": len(items) > limit,
            "nextCursor": results[-1]["id"] if results else None,
            "source": "api",
        }

    async def search(
        self,
        query: str = "",
        category: Optional[str] = None,
        rarity: Optional[str] = None,
        limit: int = CATALOG_DEFAULT_LIMIT,
        starts_after: Optional[str] = None,
    ) -> Dict[str, Any]:
        if self.bridge is not None and self.bridge.is_connected():
            data = await self.bridge.request("search", {
                "query": query,
                "type": category,
                "rarity": [rarity] if rarity else None,
                "limit": limit,
            })
            raw_items = data.get("items", []) if isinstance(data, dict) else (data or [])
            results = [self.to_catalog_item(item) for item in raw_items[:limit]]
            return {
                "items": results,
                "hasMore": len(raw_items) > limit,
                "nextCursor": results[-1]["id"] if results else None,
                "source": "bridge",
            }

        return await asyncio.to_thread(self.search_sync, query, category, rarity, limit, starts_after)

    def get_item_sync(self, item_id: str) -> Dict[str, Any]:
        try:
            response = self.session.get(f"{self.api_base}/items/{item_id}", timeout=FETCH_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            raise CatalogError(f"Catalog API error: {e}")
        if not response.ok:
            raise CatalogError(f"Item not found: {response.status_code}")
        return self.to_catalog_item(_json_object(response).get("item") or {})

    async def get_item(self, item_id: str) -> Dict[str, Any]:
        if self.bridge is not None and self.bridge.is_connected():
            data = await self.bridge.request("getItem", {"dispId": item_id})
            return self.to_catalog_item(data or {})
        return await asyncio.to_thread(self.get_item_sync, item_id)
