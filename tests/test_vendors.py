"""Tests for the document ingestion and activation adapters."""

import base64
from dataclasses import replace

import httpx
import pytest

from agentstudio.config import Settings
from agentstudio.errors import DocumentValidationError, ValidationFailure, VendorFailure
from agentstudio.vendors import (
    ActivationClient,
    ActivationDegraded,
    ActivationOk,
    DocumentIngestionClient,
    DocumentUpload,
    VendorConfig,
)
from agentstudio.vendors.activation import to_image_source

VENDOR_BASE = "https://vendor.test"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"

PDF = DocumentUpload(filename="menu.pdf", content_type="application/pdf", content=b"%PDF-1.4 menu")


def make_config(**overrides) -> VendorConfig:
    config = VendorConfig(
        api_base=VENDOR_BASE,
        api_key="test-key",
        activation_url=f"{VENDOR_BASE}/api/v1/qr",
    )
    return replace(config, **overrides)


def http_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestVendorConfig:
    def test_from_settings(self):
        config = VendorConfig.from_settings(
            Settings(vendor_api_base="https://vendor.example/", vendor_api_key="k")
        )
        assert config.api_base == "https://vendor.example"
        assert config.activation_url == "https://vendor.example/api/v1/qr"
        assert config.uploads_url == "https://vendor.example/api/v1/uploads"
        assert config.allowed_document_types == ("application/pdf",)

    def test_is_immutable(self):
        config = make_config()
        with pytest.raises(AttributeError):
            config.api_key = "other"


@pytest.mark.asyncio
class TestDocumentIngestion:
    """Tests for DocumentIngestionClient."""

    async def test_ingest_returns_reference(self, vendor):
        async with http_for(vendor.handler) as http:
            client = DocumentIngestionClient(make_config(), http)
            doc = await client.ingest(PDF, "agent-1", "org-1")

        assert doc.reference_id == "doc-1"
        assert doc.content_url == "https://files.example/menu.pdf"
        assert vendor.uploads == ["menu.pdf"]

    async def test_sends_bearer_key_and_ids(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = request.content
            return httpx.Response(200, json={"id": "top-level-id"})

        async with http_for(handler) as http:
            doc = await DocumentIngestionClient(make_config(), http).ingest(PDF, "agent-1", "org-9")

        assert doc.reference_id == "top-level-id"
        assert seen["auth"] == "Bearer test-key"
        assert b"agent-1" in seen["body"]
        assert b"org-9" in seen["body"]

    async def test_wrong_type_rejected_without_network(self, vendor):
        doc = DocumentUpload(filename="notes.docx", content_type="application/msword", content=b"x")
        async with http_for(vendor.handler) as http:
            client = DocumentIngestionClient(make_config(), http)
            with pytest.raises(DocumentValidationError) as exc_info:
                await client.ingest(doc, "agent-1", "org-1")

        assert exc_info.value.document == "notes.docx"
        assert exc_info.value.status_code == 400
        assert vendor.uploads == []

    async def test_oversized_rejected_without_network(self, vendor):
        async with http_for(vendor.handler) as http:
            client = DocumentIngestionClient(make_config(max_document_bytes=4), http)
            with pytest.raises(DocumentValidationError, match="exceeds"):
                await client.ingest(PDF, "agent-1", "org-1")
        assert vendor.uploads == []

    async def test_vendor_error_passed_through(self, vendor):
        vendor.upload_failures["menu.pdf"] = (422, {"error": "Unsupported PDF", "code": "E42"})
        async with http_for(vendor.handler) as http:
            client = DocumentIngestionClient(make_config(), http)
            with pytest.raises(VendorFailure) as exc_info:
                await client.ingest(PDF, "agent-1", "org-1")

        error = exc_info.value
        assert error.message == "Unsupported PDF"
        assert error.vendor_status == 422
        assert error.body == {"error": "Unsupported PDF", "code": "E42"}
        assert error.document == "menu.pdf"
        assert error.to_dict()["kind"] == "vendor"

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with http_for(handler) as http:
            with pytest.raises(VendorFailure) as exc_info:
                await DocumentIngestionClient(make_config(), http).ingest(PDF, "agent-1", "org-1")
        assert exc_info.value.vendor_status is None
        assert exc_info.value.document == "menu.pdf"

    async def test_missing_reference_is_failure(self):
        async with http_for(lambda request: httpx.Response(200, json={"data": {}})) as http:
            with pytest.raises(VendorFailure, match="no document id"):
                await DocumentIngestionClient(make_config(), http).ingest(PDF, "agent-1", "org-1")

    async def test_missing_key_is_failure(self, vendor):
        async with http_for(vendor.handler) as http:
            client = DocumentIngestionClient(make_config(api_key=""), http)
            with pytest.raises(VendorFailure, match="not configured"):
                await client.ingest(PDF, "agent-1", "org-1")
        assert vendor.uploads == []

    async def test_list_documents(self, vendor):
        async with http_for(vendor.handler) as http:
            client = DocumentIngestionClient(make_config(), http)
            await client.ingest(PDF, "agent-1", "org-1")
            listing = await client.list_documents("agent-1")
        assert listing == {"agent_id": "agent-1", "documents": ["menu.pdf"]}


@pytest.mark.asyncio
class TestActivation:
    """Tests for ActivationClient."""

    async def test_image_body_becomes_data_uri(self, vendor):
        async with http_for(vendor.handler) as http:
            result = await ActivationClient(make_config(), http).request_activation(
                "agent-1", "Bot1", "START NOW"
            )

        assert isinstance(result, ActivationOk)
        assert result.payload == "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()
        assert result.trigger_code == "START NOW"
        assert vendor.activation_calls == [
            {"agent_id": "agent-1", "agent_name": "Bot1", "trigger_code": "START NOW"}
        ]

    async def test_default_trigger_code(self, vendor):
        async with http_for(vendor.handler) as http:
            result = await ActivationClient(make_config(), http).request_activation("agent-1", "Bot1")

        assert result.trigger_code == "START"
        assert vendor.activation_calls[0]["trigger_code"] == "START"

    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"qrCodeUrl": "https://img.example/qr.png"}, "https://img.example/qr.png"),
            ({"url": "data:image/png;base64,AAAA"}, "data:image/png;base64,AAAA"),
            ({"qr_code": "QUJD"}, "data:image/png;base64,QUJD"),
        ],
    )
    async def test_json_bodies(self, body, expected):
        async with http_for(lambda request: httpx.Response(200, json=body)) as http:
            result = await ActivationClient(make_config(), http).request_activation("a", "Bot")
        assert isinstance(result, ActivationOk)
        assert result.payload == expected

    async def test_vendor_error_degrades(self, vendor):
        vendor.activation_status = 503
        async with http_for(vendor.handler) as http:
            result = await ActivationClient(make_config(), http).request_activation("a", "Bot")

        assert isinstance(result, ActivationDegraded)
        assert result.vendor_status == 503
        assert "activation backend down" in result.reason

    async def test_transport_error_degrades(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with http_for(handler) as http:
            result = await ActivationClient(make_config(), http).request_activation("a", "Bot")
        assert isinstance(result, ActivationDegraded)

    async def test_body_without_image_degrades(self):
        async with http_for(lambda request: httpx.Response(200, json={"ok": True})) as http:
            result = await ActivationClient(make_config(), http).request_activation("a", "Bot")
        assert isinstance(result, ActivationDegraded)
        assert result.reason == "Activation service returned no image"

    async def test_unconfigured_degrades_without_call(self, vendor):
        async with http_for(vendor.handler) as http:
            result = await ActivationClient(make_config(api_key=""), http).request_activation(
                "a", "Bot"
            )
        assert isinstance(result, ActivationDegraded)
        assert vendor.activation_calls == []

    async def test_missing_agent_id_rejected(self, vendor):
        async with http_for(vendor.handler) as http:
            client = ActivationClient(make_config(), http)
            with pytest.raises(ValidationFailure):
                await client.request_activation("", "Bot")
            with pytest.raises(ValidationFailure):
                await client.request_activation("a", "")


class TestToImageSource:
    def test_passthrough(self):
        assert to_image_source("https://x.example/a.png") == "https://x.example/a.png"

    def test_bytes(self):
        assert to_image_source(b"abc", "image/jpeg") == "data:image/jpeg;base64,YWJj"
