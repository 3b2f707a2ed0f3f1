"""
HTTP client for the Dash0 API.

Wraps a single pooled httpx.Client and turns every non-2xx response or
transport failure into an UpstreamError carrying the status code and a
best-effort human-readable detail.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import Settings


logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """An upstream API call failed.

    Attributes:
        status_code: HTTP status code (500 for transport failures)
        title: Status line of the response, if any
        detail: Extracted error detail, possibly empty
        payload: Decoded response body, if any
    """

    def __init__(
        self,
        status_code: int,
        detail: str = "",
        title: str = "",
        payload: Any = None,
    ):
        super().__init__(detail or title or f"upstream returned {status_code}")
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.payload = payload

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the normalized error shape."""
        data: Dict[str, Any] = {"status_code": self.status_code}
        if self.title:
            data["title"] = self.title
        data["detail"] = self.detail
        return data


def _message_of(obj: Dict[str, Any]) -> Optional[str]:
    for key in ("detail", "message"):
        value = obj.get(key)
        if isinstance(value, str):
            return value
    return None


def extract_error_detail(payload: Any) -> str:
    """Pull a human-readable detail out of an error response body.

    Looks, in order, for a 'detail' string, a 'message' string, an 'error'
    string or object, and the first element of an 'errors' array. The first
    hit wins.

    Args:
        payload: Decoded response body

    Returns:
        The detail text, or an empty string if nothing matched
    """
    if not isinstance(payload, dict):
        return ""

    message = _message_of(payload)
    if message is not None:
        return message

    error = payload.get("error")
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        message = _message_of(error)
        if message is not None:
            return message

    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict):
            message = _message_of(first)
            if message is not None:
                return message

    return ""


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class Dash0Client:
    """Authenticated JSON client for the Dash0 API.

    The underlying httpx.Client pools connections and is safe to share
    across threads.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        dataset: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL (e.g., https://api.eu-west-1.aws.dash0.com)
            auth_token: Bearer token
            dataset: Optional dataset sent with every request
            timeout: Request timeout in seconds
            transport: Optional httpx transport (for testing)
        """
        self.base_url = base_url.rstrip("/")
        self.dataset = dataset
        self._http = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {auth_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "Dash0Client":
        """Create a client from loaded settings."""
        return cls(
            base_url=settings.base_url or "",
            auth_token=settings.auth_token or "",
            dataset=settings.dataset,
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    def __enter__(self) -> "Dash0Client":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled connections."""
        self._http.close()

    def get(self, path: str) -> Any:
        return self.request("GET", path)

    def post(self, path: str, body: Any) -> Any:
        return self.request("POST", path, body)

    def put(self, path: str, body: Any) -> Any:
        return self.request("PUT", path, body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def request(self, method: str, path: str, body: Any = None) -> Any:
        """Perform a request against the API.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            body: Optional JSON-serializable request body

        Returns:
            Decoded JSON body, raw text for non-JSON bodies, or None when
            the body is empty

        Raises:
            UpstreamError: On transport failure or a non-2xx status
        """
        params = {"dataset": self.dataset} if self.dataset else None
        logger.debug("%s %s%s", method, self.base_url, path)

        try:
            response = self._http.request(method, path, json=body, params=params)
        except httpx.HTTPError as e:
            logger.warning("Request %s %s failed: %s", method, path, e)
            raise UpstreamError(500, detail=f"request failed: {e}") from e

        payload = _decode_body(response)

        if not response.is_success:
            error = UpstreamError(
                response.status_code,
                detail=extract_error_detail(payload),
                title=f"{response.status_code} {response.reason_phrase}".strip(),
                payload=payload,
            )
            logger.warning("Upstream %s %s returned %s: %s", method, path, error.status_code, error.detail)
            raise error

        return payload
