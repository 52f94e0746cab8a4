"""HTTP persistence gateway for the admin JSON API."""

import asyncio
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

import requests

from .errors import NetworkError, NotFoundError, RejectedError, ServerError
from .gateway import PersistenceGateway
from .models import CollectionSchema, OrderedItem, item_from_payload, sort_items

logger = logging.getLogger(__name__)

_SNAKE_RE = re.compile(r"_([a-z0-9])")


def camel_case(key: str) -> str:
    """Convert ``is_visible`` style keys to ``isVisible``."""
    return _SNAKE_RE.sub(lambda m: m.group(1).upper(), key)


class HTTPGateway(PersistenceGateway):
    """Persistence gateway talking to ``<base_url>/api/<route>`` routes.

    ``<route>`` is the collection schema's ``endpoint`` (its ``route`` or its name).

    Routes:
        GET    /api/<route>            list items
        POST   /api/<route>            create item
        PUT    /api/<route>/<id>       update item
        DELETE /api/<route>/<id>       delete item
        POST   /api/<route>/reorder    body ``{"order": [{id, position}, ...]}``

    Requests are never retried; every retry is an explicit user action.

    Args:
        base_url: Server root, e.g. ``https://example.org``
        schemas: Collection schemas keyed by collection name
        timeout: Request timeout in seconds (default: 15)
        field_style: ``camel`` to send ``isVisible``-style keys, ``snake`` otherwise
        headers: Extra headers sent with every request (e.g. a session cookie)
    """

    def __init__(
        self,
        base_url: str,
        schemas: Mapping[str, CollectionSchema],
        timeout: int = 15,
        field_style: str = "camel",
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(schemas)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.field_style = field_style
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)

    def _url(self, *parts: Any) -> str:
        return "/".join([self.base_url, "api"] + [str(p) for p in parts])

    def _error_message(self, response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"Request failed with status {response.status_code}"

    def request(self, method: str, *parts: Any, payload: Any = None) -> Any:
        """Perform one blocking request and return its decoded JSON body.

        Raises:
            NetworkError: On connection errors or timeouts
            NotFoundError: On 404
            RejectedError: On other 4xx responses
            ServerError: On 5xx responses or an undecodable body
        """
        url = self._url(*parts)
        try:
            r = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise NetworkError(f"Could not reach {url}: {e}") from e

        if r.status_code >= 400:
            message = self._error_message(r)
            logger.error("%s %s returned %s: %s", method, url, r.status_code, message)
            if r.status_code == 404:
                raise NotFoundError(message, status=404)
            if r.status_code < 500:
                raise RejectedError(message, status=r.status_code)
            raise ServerError(message, status=r.status_code)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise ServerError(f"Invalid JSON from {url}", status=r.status_code) from e

    def _outgoing(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        if self.field_style == "camel":
            return {camel_case(k): v for k, v in fields.items()}
        return dict(fields)

    async def fetch_ordered(self, collection: str) -> List[OrderedItem]:
        schema = self.schema(collection)
        data = await asyncio.to_thread(self.request, "GET", schema.endpoint)
        if not isinstance(data, list):
            raise ServerError(f"Expected a list of {collection}, got {type(data).__name__}")
        return sort_items([item_from_payload(entry, schema) for entry in data])

    async def reorder(self, collection: str, order: List[Dict[str, Any]]) -> None:
        schema = self.schema(collection)
        await asyncio.to_thread(self.request, "POST", schema.endpoint, "reorder", payload={"order": order})

    async def upsert_item(self, collection: str, item_id: Optional[Any], fields: Mapping[str, Any]) -> OrderedItem:
        schema = self.schema(collection)
        body = self._outgoing(fields)
        if item_id is None:
            data = await asyncio.to_thread(self.request, "POST", schema.endpoint, payload=body)
        else:
            data = await asyncio.to_thread(self.request, "PUT", schema.endpoint, item_id, payload=body)
        if not isinstance(data, dict):
            raise ServerError(f"Expected an item payload from {collection}")
        return item_from_payload(data, schema)

    async def delete_item(self, collection: str, item_id: Any) -> None:
        schema = self.schema(collection)
        await asyncio.to_thread(self.request, "DELETE", schema.endpoint, item_id)

    def close(self):
        """Close the underlying session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


__all__ = ["HTTPGateway", "camel_case"]
