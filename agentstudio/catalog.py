"""Agent catalog: read path for list and edit views.

Rows are read flat (agent columns plus the joined organization's profile)
and mapped into ``AgentConfig`` by ``map_row_to_config``, a pure function
that tolerates JSON columns still encoded as text or malformed.
"""

import re
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Text, select, type_coerce

from agentstudio.db.engine import SessionFactory, transaction
from agentstudio.db.models import Agent, CapabilityFlag, Organization
from agentstudio.db.types import decode_json_column
from agentstudio.schemas.agents import AgentConfig, ModelRouting

_RECOGNIZED_FLAGS = {flag.value for flag in CapabilityFlag}
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def decode_capabilities(value: Any) -> list[str]:
    """Decode the allowed_actions column into an ordered list of flags.

    Accepts the list form (``["web_search_tool"]``) and the older object
    form (``{"updateContactTable": true}``). Unrecognized names are dropped.
    """
    decoded = decode_json_column(value, [])
    if not decoded:
        as_object = decode_json_column(value, {})
        decoded = [_snake(key) for key, enabled in as_object.items() if enabled]
    flags = [flag for flag in decoded if isinstance(flag, str) and flag in _RECOGNIZED_FLAGS]
    return list(dict.fromkeys(flags))


def decode_routing(value: Any) -> ModelRouting | None:
    routing = decode_json_column(value, {})
    if routing.get("model") and routing.get("route"):
        return ModelRouting(model=str(routing["model"]), route=str(routing["route"]))
    return None


def _strings(value: Any) -> list[str]:
    return [item for item in decode_json_column(value, []) if isinstance(item, str)]


def map_row_to_config(row: Mapping[str, Any]) -> AgentConfig:
    """Map a flat catalog row to the structured agent shape."""
    return AgentConfig(
        id=row["id"],
        organization_id=row["organization_id"],
        agent_name=row["name"],
        trigger_code=row["trigger_code"],
        status=row.get("status") or "Training",
        business_name=row["business_name"],
        industry=row.get("industry") or "",
        short_description=row.get("short_description") or "",
        business_url=row.get("business_url") or "",
        language=row["language"],
        tone=row["tone"],
        persona_prompt=row.get("persona_prompt") or "",
        task_prompt=row.get("task_prompt") or "",
        greeting_message=row.get("greeting_message") or "",
        allowed_actions=decode_capabilities(row.get("allowed_actions")),
        document_refs=_strings(row.get("document_refs")),
        source_urls=_strings(row.get("source_urls")),
        model_routing=decode_routing(row.get("model_config")),
        activation_payload=row.get("qr_code_base64") or None,
        updated_at=row.get("updated_at"),
    )


def _catalog_query():
    agents = Agent.__table__.c
    return select(
        agents.id,
        agents.organization_id,
        agents.name,
        agents.trigger_code,
        agents.status,
        agents.language,
        agents.tone,
        agents.persona_prompt,
        agents.task_prompt,
        agents.greeting_message,
        # Raw text, so the older object form reaches decode_capabilities
        type_coerce(agents.allowed_actions, Text).label("allowed_actions"),
        agents.document_refs,
        agents.source_urls,
        agents.model_config,
        agents.qr_code_base64,
        agents.updated_at,
        Organization.name.label("business_name"),
        Organization.industry,
        Organization.short_description,
        Organization.website.label("business_url"),
    ).join(Organization, agents.organization_id == Organization.id)


class AgentCatalog:
    """Reads agents in catalog shape."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def list_agents_for_owner(self, owner_id: str) -> list[AgentConfig]:
        """Agents in organizations owned by ``owner_id``, oldest first."""
        query = (
            _catalog_query()
            .where(Organization.owner_id == owner_id)
            .order_by(Agent.__table__.c.created_at, Agent.__table__.c.id)
        )
        async with transaction(self._session_factory) as session:
            result = await session.execute(query)
            return [map_row_to_config(row) for row in result.mappings()]

    async def get_agent_by_id(self, agent_id: str) -> AgentConfig | None:
        query = _catalog_query().where(Agent.__table__.c.id == agent_id).limit(1)
        async with transaction(self._session_factory) as session:
            row = (await session.execute(query)).mappings().first()
            return map_row_to_config(row) if row else None
