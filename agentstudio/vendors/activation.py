"""Activation code adapter.

Asks the activation service for a scannable image that opens a channel
conversation pre-bound to one agent. The call is best-effort: vendor and
transport failures come back as ``ActivationDegraded`` instead of raising,
so callers branch on the result type. Re-calling with the same inputs is
safe and is how an agent gets a new image later.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass

import httpx

from agentstudio.errors import ValidationFailure
from agentstudio.logging import get_logger
from agentstudio.metrics import record_vendor_call
from agentstudio.vendors.config import VendorConfig

logger = get_logger(__name__)

VENDOR = "activation"

# JSON keys the vendor has used for the image across API versions
_IMAGE_KEYS = ("url", "qr_code", "image_url", "qrCodeUrl")


@dataclass(frozen=True)
class ActivationOk:
    """An image usable directly as an ``<img src>``."""

    payload: str
    trigger_code: str


@dataclass(frozen=True)
class ActivationDegraded:
    """No image could be obtained; ``reason`` says why."""

    reason: str
    trigger_code: str
    vendor_status: int | None = None


ActivationResult = ActivationOk | ActivationDegraded


def to_image_source(value: str | bytes, content_type: str = "image/png") -> str:
    """Turn a vendor image into a displayable source.

    Raw bytes and bare base64 become a data URI. Data URIs and http(s)
    URLs are returned unchanged.
    """
    if isinstance(value, bytes):
        return f"data:{content_type};base64,{base64.b64encode(value).decode('ascii')}"
    if value.startswith(("data:", "http://", "https://")):
        return value
    return f"data:{content_type};base64,{value}"


class ActivationClient:
    """Async client for the activation-code service."""

    def __init__(self, config: VendorConfig, http: httpx.AsyncClient | None = None):
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def __aenter__(self) -> ActivationClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def request_activation(
        self,
        agent_id: str,
        agent_name: str,
        trigger_code: str | None = None,
    ) -> ActivationResult:
        """Request an activation image for an agent.

        Args:
            agent_id: Required agent id.
            agent_name: Required agent display name.
            trigger_code: Phrase baked into the code; defaults to "START".

        Raises:
            ValidationFailure: If agent_id or agent_name is missing.
        """
        if not agent_id:
            raise ValidationFailure("Agent ID is required", field="agent_id")
        if not agent_name:
            raise ValidationFailure("Agent name is required", field="agent_name")
        trigger = trigger_code or self.config.default_trigger_code

        if not self.config.api_key or not self.config.activation_url:
            return self._degraded("Activation service is not configured", trigger)

        try:
            response = await self._http.post(
                self.config.activation_url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                json={"agent_id": agent_id, "agent_name": agent_name, "trigger_code": trigger},
            )
        except httpx.HTTPError as exc:
            return self._degraded(f"Activation request failed: {exc}", trigger)

        if response.is_error:
            return self._degraded(
                f"Activation service error: {response.status_code} {response.text}",
                trigger,
                vendor_status=response.status_code,
            )

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type.startswith("image/"):
            payload = to_image_source(response.content, content_type)
        else:
            try:
                data = response.json()
            except ValueError:
                return self._degraded("Activation service returned an unreadable body", trigger)
            image = next((data[k] for k in _IMAGE_KEYS if isinstance(data, dict) and data.get(k)), None)
            if not image:
                return self._degraded("Activation service returned no image", trigger)
            payload = to_image_source(image)

        record_vendor_call(VENDOR, "success")
        logger.info("activation_issued", agent_id=agent_id, trigger_code=trigger)
        return ActivationOk(payload=payload, trigger_code=trigger)

    def _degraded(self, reason: str, trigger: str, vendor_status: int | None = None) -> ActivationDegraded:
        record_vendor_call(VENDOR, "degraded")
        logger.warning("activation_degraded", reason=reason, vendor_status=vendor_status)
        return ActivationDegraded(reason=reason, trigger_code=trigger, vendor_status=vendor_status)
