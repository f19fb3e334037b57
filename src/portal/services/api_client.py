"""Thin client for the portal REST backend.

Every backend response is wrapped as ``{success, data, meta?, timestamp}``
and every error as ``{statusCode, message, error, details?}``. This module
is the only place that knows about those envelopes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import requests
import requests.exceptions

from portal.config import API_TIMEOUT, DOWNLOAD_TIMEOUT, get_api_token, get_api_url
from portal.models.page import Page, PageMeta
from portal.services.exceptions import (
    GENERIC_ERROR_MESSAGE,
    ApiConnectionError,
    ApiError,
)
from portal.services.http_retry import (
    API_READ,
    API_WRITE,
    RetryableHTTPError,
    check_status,
    retry_call,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _error_message(resp: Any) -> tuple[str, dict]:
    """Best-effort extraction of the backend error message and details."""
    try:
        body = resp.json()
    except ValueError:
        return GENERIC_ERROR_MESSAGE, {}
    if not isinstance(body, dict):
        return GENERIC_ERROR_MESSAGE, {}
    details = body.get("details") or {}
    message = body.get("message")
    if isinstance(message, list):
        message = "; ".join(str(m) for m in message)
    if not message:
        return GENERIC_ERROR_MESSAGE, details
    return str(message), details


def _raise_for_status(resp: Any) -> None:
    if resp.ok:
        return
    message, details = _error_message(resp)
    logger.info("API error %s: %s", resp.status_code, message)
    raise ApiError(message, status_code=resp.status_code, details=details)


def _default_meta(count: int, params: dict | None) -> dict:
    params = params or {}
    return {
        "total": count,
        "page": params.get("page") or 1,
        "perPage": params.get("perPage") or params.get("limit") or 10,
        "totalPages": 1,
        "hasNext": False,
        "hasPrev": False,
    }


class ApiClient:
    """Authenticated session against the portal backend."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: tuple[float, float] = API_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            }
        )

    @classmethod
    def from_config(cls) -> ApiClient:
        """Build a client from PORTAL_API_URL and the stored token.

        Raises KeyError when no token is configured.
        """
        return cls(get_api_url(), get_api_token())

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        timeout: tuple[float, float] | None = None,
    ) -> Any:
        policy = API_READ if method == "GET" else API_WRITE
        url = self._url(path)

        def _do():
            resp = self._session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=timeout or self.timeout,
            )
            return check_status(resp, policy, f"{method} {path}")

        try:
            resp = retry_call(_do, policy)
        except RetryableHTTPError as exc:
            resp = exc.response
        except requests.exceptions.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiConnectionError() from exc

        _raise_for_status(resp)
        return resp

    @staticmethod
    def _unwrap(resp: Any) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            body = resp.json()
        except ValueError:
            raise ApiError(GENERIC_ERROR_MESSAGE, status_code=resp.status_code) from None
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def get(self, path: str, params: dict | None = None) -> Any:
        return self._unwrap(self._request("GET", path, params=params))

    def post(self, path: str, json: dict | None = None) -> Any:
        return self._unwrap(self._request("POST", path, json=json))

    def patch(self, path: str, json: dict | None = None) -> Any:
        return self._unwrap(self._request("PATCH", path, json=json))

    def delete(self, path: str) -> None:
        self._request("DELETE", path)

    def get_page(
        self,
        path: str,
        params: dict | None = None,
        parse: Callable[[dict], T] | None = None,
    ) -> Page[T]:
        """GET a paginated collection and normalise it into a Page.

        The backend answers either ``{data: [...], meta}`` or
        ``{data: {items: [...], meta}}``; a missing meta is synthesised.
        """
        resp = self._request("GET", path, params=params)
        try:
            body = resp.json()
        except ValueError:
            raise ApiError(GENERIC_ERROR_MESSAGE, status_code=resp.status_code) from None

        payload = body.get("data") if isinstance(body, dict) else None
        if isinstance(payload, list):
            items = payload
        elif isinstance(body, list):
            items = body
        elif isinstance(payload, dict):
            items = payload.get("items") or []
        else:
            items = []

        meta = None
        if isinstance(body, dict):
            meta = body.get("meta")
        if meta is None and isinstance(payload, dict):
            meta = payload.get("meta")
        if meta is None:
            meta = _default_meta(len(items), params)

        parsed = [parse(item) for item in items] if parse else list(items)
        return Page(items=parsed, meta=PageMeta.from_dict(meta))

    def download(self, path: str, params: dict | None = None) -> bytes:
        """GET a binary resource (PDF, XML, exported report)."""
        resp = self._request("GET", path, params=params, timeout=DOWNLOAD_TIMEOUT)
        return resp.content
