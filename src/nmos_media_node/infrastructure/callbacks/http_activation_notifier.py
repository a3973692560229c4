"""HTTP webhook for activation notifications.

The node service invokes activation callbacks while it holds the node write
lock, so a slow webhook delays every other graph mutation by up to
`timeout_seconds`. Keep the timeout short, or hand activations to a queue in
the embedding application when the endpoint is slow.
"""

from __future__ import annotations

import logging

import httpx

from nmos_media_node.domain.ports import ActivationCallback

logger = logging.getLogger(__name__)


class ActivationNotifierError(RuntimeError):
    """Raised when the activation webhook call fails."""


class HttpActivationNotifier(ActivationCallback):
    """POST `{"id", "sdp"}` to a webhook on every activation.

    Delivery failures are logged and never undo the activation.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        normalized = url.strip()
        if not normalized:
            raise ActivationNotifierError("Activation webhook URL cannot be empty.")
        self._url = normalized
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def __call__(self, internal_id: str, sdp: str | None) -> None:
        try:
            self.notify(internal_id, sdp)
        except ActivationNotifierError as exc:
            logger.warning("Activation webhook for '%s' failed: %s", internal_id, exc)

    def notify(self, internal_id: str, sdp: str | None) -> None:
        """POST one activation to the webhook."""

        try:
            with httpx.Client(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = http_client.post(self._url, json={"id": internal_id, "sdp": sdp})
        except httpx.HTTPError as exc:
            raise ActivationNotifierError(f"POST {self._url} failed: {exc}") from exc
        self._ensure_success(response)

    def _ensure_success(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message = self._detail_from_response(response)
        raise ActivationNotifierError(
            f"{response.request.method} {response.request.url} failed: "
            f"{response.status_code} {message}"
        )

    def _detail_from_response(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            text = response.text.strip()
            return text or "<no response body>"

        if isinstance(payload, dict):
            detail = payload.get("detail")
            if isinstance(detail, str):
                return detail
        return str(payload)


__all__ = ["ActivationNotifierError", "HttpActivationNotifier"]
