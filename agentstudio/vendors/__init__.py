"""Adapters for the external document-ingestion and activation services."""

from agentstudio.vendors.activation import (
    ActivationClient,
    ActivationDegraded,
    ActivationOk,
    ActivationResult,
)
from agentstudio.vendors.config import VendorConfig
from agentstudio.vendors.ingestion import DocumentIngestionClient, DocumentUpload, IngestedDocument

__all__ = [
    "ActivationClient",
    "ActivationDegraded",
    "ActivationOk",
    "ActivationResult",
    "DocumentIngestionClient",
    "DocumentUpload",
    "IngestedDocument",
    "VendorConfig",
]
