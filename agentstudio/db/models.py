"""Database models for organizations and their agents.

All models use SQLModel for Pydantic + SQLAlchemy integration.
Array and object columns are stored as JSON text (see ``db.types``).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel

from agentstudio.db.types import JSONArray, JSONObject


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


class AgentStatus(str, Enum):
    """Lifecycle status of an agent."""

    TRAINING = "Training"
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class CapabilityFlag(str, Enum):
    """Actions an agent may be permitted to take."""

    UPDATE_CONTACT_TABLE = "update_contact_table"
    DELEGATE_TO_HUMAN = "delegate_to_human"
    WEB_SEARCH_TOOL = "web_search_tool"
    NEARBY_SEARCH_TOOL = "nearby_search_tool"


class Organization(SQLModel, table=True):
    """A tenant business that owns one or more agents."""

    __tablename__ = "organizations"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    name: str = Field(max_length=255, unique=True)
    owner_id: str = Field(index=True)  # Identity-provider user id
    website: str | None = Field(default=None)
    industry: str | None = Field(default=None, max_length=100)
    short_description: str | None = Field(default=None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Agent(SQLModel, table=True):
    """A conversational agent bound to a trigger phrase.

    Deleting the parent organization deletes its agents.
    """

    __tablename__ = "agents"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    organization_id: str = Field(
        foreign_key="organizations.id",
        ondelete="CASCADE",
        index=True,
    )
    name: str = Field(max_length=255, unique=True)
    language: str = Field(max_length=50)
    tone: str = Field(max_length=50)
    persona_prompt: str | None = Field(default=None)
    task_prompt: str | None = Field(default=None)
    trigger_code: str = Field(max_length=100, unique=True)
    allowed_actions: list[str] = Field(
        default_factory=list, sa_column=Column(JSONArray, nullable=False)
    )
    qr_code_base64: str | None = Field(default=None)
    greeting_message: str | None = Field(default=None)
    status: str = Field(
        default=AgentStatus.TRAINING.value,
        sa_column=Column(String(50), nullable=False),
    )
    document_refs: list[str] = Field(
        default_factory=list, sa_column=Column(JSONArray, nullable=False)
    )
    source_urls: list[str] = Field(
        default_factory=list, sa_column=Column(JSONArray, nullable=False)
    )
    # "model_config" is reserved by pydantic, so the attribute name differs
    routing: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("model_config", JSONObject, nullable=False),
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
