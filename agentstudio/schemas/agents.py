"""Request and response schemas for organizations and agents.

Payloads use camelCase on the wire (``triggerCode``) and snake_case in
Python. Both spellings are accepted on input.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from agentstudio.db.models import AgentStatus, CapabilityFlag

MAX_TRIGGER_WORDS = 4


def normalize_trigger_code(value: str) -> str:
    """Uppercase and trim a trigger phrase, collapsing inner whitespace.

    Raises:
        ValueError: If the phrase is empty or longer than four words.
    """
    words = value.split()
    if not words:
        raise ValueError("trigger code is required")
    if len(words) > MAX_TRIGGER_WORDS:
        raise ValueError(f"trigger code must be at most {MAX_TRIGGER_WORDS} words")
    return " ".join(words).upper()


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class ModelRouting(CamelModel):
    """Which model serves an agent, and through which route."""

    model: str = Field(..., min_length=1)
    route: str = Field(..., min_length=1)


class OrganizationDraft(CamelModel):
    """Business profile submitted with a deploy."""

    id: str | None = Field(default=None, description="Client-generated id; generated if omitted")
    name: str = Field(..., min_length=1, max_length=255)
    website: str | None = None
    industry: str = "Others"
    short_description: str = ""
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("organization name is required")
        return value


class AgentDraft(CamelModel):
    """Agent configuration as authored in the editor."""

    id: str | None = Field(default=None, description="Client-generated id; generated if omitted")
    name: str = Field(..., min_length=1, max_length=255)
    trigger_code: str = Field(..., max_length=100)
    language: str = "English"
    tone: str = "Formal"
    status: AgentStatus = AgentStatus.TRAINING
    persona_prompt: str = ""
    task_prompt: str = ""
    greeting_message: str = ""
    allowed_actions: list[CapabilityFlag] = Field(default_factory=list)
    document_refs: list[str] = Field(default_factory=list)
    source_urls: list[str] = Field(default_factory=list)
    model_routing: ModelRouting | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("agent name is required")
        return value

    @field_validator("trigger_code")
    @classmethod
    def _normalize_trigger(cls, value: str) -> str:
        return normalize_trigger_code(value)

    @field_validator("allowed_actions")
    @classmethod
    def _dedupe_actions(cls, value: list[CapabilityFlag]) -> list[CapabilityFlag]:
        return list(dict.fromkeys(value))

    @field_validator("source_urls", "document_refs")
    @classmethod
    def _drop_blank(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]


class AgentUpsert(AgentDraft):
    """Full agent record written by the configuration editor."""

    organization_id: str
    activation_payload: str | None = None


class DeployRequest(CamelModel):
    """JSON part of a deploy submission."""

    organization: OrganizationDraft
    agent: AgentDraft


class OrganizationRecord(CamelModel):
    """A committed organization."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
        from_attributes=True,
    )

    id: str
    name: str
    owner_id: str
    website: str | None = None
    industry: str | None = None
    short_description: str | None = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class AgentConfig(CamelModel):
    """Agent as shown by list and edit views, with its organization joined."""

    id: str
    organization_id: str
    agent_name: str
    trigger_code: str
    status: str
    business_name: str
    industry: str = ""
    short_description: str = ""
    business_url: str = ""
    language: str
    tone: str
    persona_prompt: str = ""
    task_prompt: str = ""
    greeting_message: str = ""
    allowed_actions: list[str] = Field(default_factory=list)
    document_refs: list[str] = Field(default_factory=list)
    source_urls: list[str] = Field(default_factory=list)
    model_routing: ModelRouting | None = None
    activation_payload: str | None = None
    updated_at: datetime | None = None


class DeployResponse(CamelModel):
    """Successful deploy result."""

    success: bool = True
    organization: OrganizationRecord
    agents: list[AgentConfig]
    steps: list[str]
    activation_degraded: str | None = None


class ActivationRequest(CamelModel):
    """Request to (re)generate an activation image for an agent."""

    agent_id: str = Field(..., min_length=1)
    agent_name: str = Field(..., min_length=1)
    trigger_code: str | None = None


class ActivationResponse(CamelModel):
    success: bool = True
    qr_code_url: str
    used_trigger_code: str


class UploadResponse(CamelModel):
    success: bool = True
    data: dict[str, Any]


class IndustryPresetResponse(CamelModel):
    industry: str
    initial_greeting: str
    persona: str
    task: str
