"""Immutable vendor configuration handed to each adapter."""

from dataclasses import dataclass

from agentstudio.config import MAX_DOCUMENT_BYTES, Settings


@dataclass(frozen=True)
class VendorConfig:
    """Endpoints, credentials and limits for the external services."""

    api_base: str
    api_key: str
    activation_url: str
    timeout_seconds: float = 30.0
    max_document_bytes: int = MAX_DOCUMENT_BYTES
    allowed_document_types: tuple[str, ...] = ("application/pdf",)
    default_trigger_code: str = "START"

    @classmethod
    def from_settings(cls, settings: Settings) -> "VendorConfig":
        api_base = settings.vendor_api_base.rstrip("/")
        return cls(
            api_base=api_base,
            api_key=settings.vendor_api_key,
            activation_url=settings.activation_url or f"{api_base}/api/v1/qr",
            timeout_seconds=settings.vendor_timeout_seconds,
            max_document_bytes=settings.max_document_bytes,
            allowed_document_types=tuple(settings.allowed_document_types),
            default_trigger_code=settings.default_trigger_code,
        )

    @property
    def uploads_url(self) -> str:
        return f"{self.api_base}/api/v1/uploads"
