"""
HTTP client for the serverless functions that front payment, email and user
provisioning providers.
"""
from typing import Any, Dict, Optional

import httpx
from flask import current_app

from yachtdesk.errors import FunctionCallError, SessionExpiredError

EXPIRY_MARKERS = (
    "jwt expired",
    "token expired",
    "session expired",
    "claim timestamp check failed",
)

CREATE_PAYMENT_LINK = "create-invoice-payment"
DELETE_PAYMENT_LINK = "delete-invoice-payment-link"
SEND_PAYMENT_EMAIL = "send-payment-link-email"
SEND_REPAIR_APPROVAL = "send-repair-approval-notification"
SEND_REPAIR_NOTIFICATION = "send-repair-notification"
SEND_MESSAGE_NOTIFICATION = "send-message-notification"
CREATE_USER = "create-user"


def is_token_expired_error(message, status_code=None):
    text = (message or "").lower()
    if any(marker in text for marker in EXPIRY_MARKERS):
        return True
    return status_code == 401 and "unauthorized" in text


def extract_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error") or body.get("message") or body.get("msg")
        if isinstance(error, dict):
            error = error.get("message")
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


class FunctionsClient:
    """Client for the serverless function endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        config = current_app.config
        self.base_url = (base_url or config.get("FUNCTIONS_BASE_URL") or "").rstrip("/")
        self.token = token or config.get("FUNCTIONS_SERVICE_TOKEN")
        self.timeout = timeout or config.get("FUNCTIONS_TIMEOUT", 20.0)
        self.transport = transport or current_app.extensions.get("functions_transport")

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        bearer = token or self.token
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def invoke(self, name: str, payload: Optional[Dict[str, Any]] = None, token: Optional[str] = None) -> Dict[str, Any]:
        """POST ``payload`` to the named function and return its JSON body.

        Expired credentials raise ``SessionExpiredError``; any other non-2xx
        answer, or a body carrying ``success: false``, raises
        ``FunctionCallError`` with the remote error text.
        """
        if not self.configured:
            raise FunctionCallError(name, "Serverless functions are not configured.")

        url = f"{self.base_url}/{name.lstrip('/')}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=payload or {}, headers=self._headers(token))
        except httpx.HTTPError as exc:
            current_app.logger.warning("Function %s unreachable: %s", name, exc)
            raise FunctionCallError(name, f"Could not reach {name}.") from exc

        if response.status_code >= 400:
            message = extract_error(response)
            if is_token_expired_error(message, response.status_code):
                raise SessionExpiredError()
            current_app.logger.warning("Function %s failed with %s: %s", name, response.status_code, message)
            raise FunctionCallError(name, message, remote_status=response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("success") is False:
            message = extract_error(response)
            if is_token_expired_error(message, response.status_code):
                raise SessionExpiredError()
            raise FunctionCallError(name, message, remote_status=response.status_code)
        return body if isinstance(body, dict) else {"data": body}
