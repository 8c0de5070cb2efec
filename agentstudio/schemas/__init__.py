"""API schemas for deploys, agents and vendor integrations."""

from agentstudio.schemas.agents import (
    ActivationRequest,
    ActivationResponse,
    AgentConfig,
    AgentDraft,
    AgentUpsert,
    DeployRequest,
    DeployResponse,
    IndustryPresetResponse,
    ModelRouting,
    OrganizationDraft,
    OrganizationRecord,
    UploadResponse,
    normalize_trigger_code,
)

__all__ = [
    "ActivationRequest",
    "ActivationResponse",
    "AgentConfig",
    "AgentDraft",
    "AgentUpsert",
    "DeployRequest",
    "DeployResponse",
    "IndustryPresetResponse",
    "ModelRouting",
    "OrganizationDraft",
    "OrganizationRecord",
    "UploadResponse",
    "normalize_trigger_code",
]
