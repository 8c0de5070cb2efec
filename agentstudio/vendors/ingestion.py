"""Document ingestion adapter.

Forwards one knowledge-base document to the ingestion service and returns
the vendor's reference. Documents are checked for type and size before
any network call. Nothing is retried.

Usage:
    async with DocumentIngestionClient(config) as client:
        doc = await client.ingest(upload, agent_id, organization_id)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from agentstudio.errors import DocumentValidationError, VendorFailure
from agentstudio.logging import get_logger
from agentstudio.metrics import record_vendor_call
from agentstudio.vendors.config import VendorConfig

logger = get_logger(__name__)

VENDOR = "ingestion"


@dataclass(frozen=True)
class DocumentUpload:
    """A document attached to a deploy."""

    filename: str
    content_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class IngestedDocument:
    """The vendor's handle on an ingested document."""

    reference_id: str
    content_url: str | None = None
    filename: str | None = None


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class DocumentIngestionClient:
    """Async client for the document ingestion service.

    Args:
        config: Vendor endpoints, key and document limits.
        http: Optional shared ``httpx.AsyncClient``. One is created (and
            owned) when omitted.
    """

    def __init__(self, config: VendorConfig, http: httpx.AsyncClient | None = None):
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def __aenter__(self) -> DocumentIngestionClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def validate(self, document: DocumentUpload) -> None:
        """Reject documents of the wrong type or over the size ceiling.

        Raises:
            DocumentValidationError: Naming the offending document.
        """
        if document.content_type not in self.config.allowed_document_types:
            allowed = ", ".join(self.config.allowed_document_types)
            raise DocumentValidationError(
                f"'{document.filename}' has type {document.content_type!r}; only {allowed} is allowed",
                document=document.filename,
            )
        if document.size > self.config.max_document_bytes:
            limit_mb = self.config.max_document_bytes // (1024 * 1024)
            raise DocumentValidationError(
                f"'{document.filename}' exceeds the {limit_mb}MB limit",
                document=document.filename,
            )

    def _require_key(self, document: str | None = None) -> None:
        if not self.config.api_key:
            raise VendorFailure(
                "Ingestion API key is not configured",
                vendor=VENDOR,
                document=document,
            )

    async def ingest(
        self,
        document: DocumentUpload,
        agent_id: str,
        organization_id: str,
    ) -> IngestedDocument:
        """Upload one document for an agent.

        Raises:
            DocumentValidationError: Bad type or size (no network call made).
            VendorFailure: Non-success answer or transport error, with the
                vendor status and body attached verbatim.
        """
        self.validate(document)
        self._require_key(document.filename)

        try:
            response = await self._http.post(
                self.config.uploads_url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                data={"agent_id": agent_id, "organization_id": organization_id},
                files={"file": (document.filename, document.content, document.content_type)},
            )
        except httpx.HTTPError as exc:
            record_vendor_call(VENDOR, "error")
            raise VendorFailure(
                f"Upload of '{document.filename}' failed: {exc}",
                vendor=VENDOR,
                body=str(exc),
                document=document.filename,
            ) from exc

        body = _response_body(response)
        if response.is_error:
            record_vendor_call(VENDOR, "error")
            message = body.get("error") if isinstance(body, dict) else None
            raise VendorFailure(
                message or f"Upload failed with {response.status_code}",
                vendor=VENDOR,
                vendor_status=response.status_code,
                body=body,
                document=document.filename,
            )

        payload = body.get("data", body) if isinstance(body, dict) else None
        reference_id = None
        if isinstance(payload, dict):
            reference_id = payload.get("id") or payload.get("reference_id")
        if not reference_id:
            record_vendor_call(VENDOR, "error")
            raise VendorFailure(
                f"Upload of '{document.filename}' returned no document id",
                vendor=VENDOR,
                vendor_status=response.status_code,
                body=body,
                document=document.filename,
            )

        record_vendor_call(VENDOR, "success")
        logger.info(
            "document_ingested",
            filename=document.filename,
            reference_id=reference_id,
            agent_id=agent_id,
        )
        return IngestedDocument(
            reference_id=str(reference_id),
            content_url=payload.get("url") or payload.get("content_url"),
            filename=document.filename,
        )

    async def list_documents(self, agent_id: str) -> Any:
        """Return the vendor's listing of documents held for an agent."""
        self._require_key()
        try:
            response = await self._http.get(
                f"{self.config.uploads_url}/{agent_id}",
                headers={"api-key": self.config.api_key, "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            record_vendor_call(VENDOR, "error")
            raise VendorFailure(f"Listing documents failed: {exc}", vendor=VENDOR, body=str(exc)) from exc

        body = _response_body(response)
        if response.is_error:
            record_vendor_call(VENDOR, "error")
            message = body.get("error") if isinstance(body, dict) else None
            raise VendorFailure(
                message or "Request failed",
                vendor=VENDOR,
                vendor_status=response.status_code,
                body=body,
            )
        record_vendor_call(VENDOR, "success")
        return body
