from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.utils.log import get_logger

log = get_logger("functions")


class FunctionInvokeError(Exception):
    """
    Raised when a collaborator function can't be reached or answers with an error status.
    `payload` holds the decoded JSON error body when there is one.
    """

    def __init__(self, name: str, message: str, status_code: Optional[int] = None, payload: Any = None):
        self.name = name
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


class FunctionsClient:
    """
    Synchronous client for the platform's serverless functions
    (calculate-shipping, charge-payment, send-order-to-pharmacy, ...).

    Every call is a JSON POST to {base_url}/{name} carrying the internal service key.
    `transport` lets tests plug in an httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        internal_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.FUNCTIONS_BASE_URL).rstrip("/")
        self.internal_key = internal_key or settings.SVC_INTERNAL_KEY
        self.timeout = timeout if timeout is not None else settings.EXTERNAL_TIMEOUT_SECONDS
        self.transport = transport

    def invoke(self, name: str, body: Dict, headers: Optional[Dict[str, str]] = None) -> Any:
        req_headers = {"X-Internal-Key": self.internal_key}
        if headers:
            req_headers.update(headers)
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(f"{self.base_url}/{name}", json=body, headers=req_headers)
        except httpx.RequestError as e:
            log.error(f"{name}: request failed: {e!r}")
            raise FunctionInvokeError(name, f"{name} unavailable: {e}") from e

        payload = None
        if resp.content:
            try:
                payload = resp.json()
            except ValueError:
                payload = None

        if resp.status_code >= 400:
            detail = payload.get("error") if isinstance(payload, dict) else None
            raise FunctionInvokeError(
                name,
                detail or f"{name} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                payload=payload,
            )
        return payload
