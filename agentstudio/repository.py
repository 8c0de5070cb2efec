"""Agent repository: transactional writes of organizations and agents.

The repository assumes an already-migrated schema (see ``db.migrations``).
Unique-key violations come back as ``ConflictFailure``; any other
database error rolls the transaction back and surfaces as
``PersistenceFailure``.
"""

from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from agentstudio.db.engine import SessionFactory, transaction
from agentstudio.db.models import Agent, Organization, utc_now
from agentstudio.errors import (
    ConflictFailure,
    PersistenceFailure,
    ValidationFailure,
    field_for_constraint,
    unique_constraint_name,
)
from agentstudio.logging import get_logger

logger = get_logger(__name__)

# Agent columns rewritten by a full-record upsert
_AGENT_FIELDS = (
    "organization_id",
    "name",
    "language",
    "tone",
    "persona_prompt",
    "task_prompt",
    "trigger_code",
    "allowed_actions",
    "qr_code_base64",
    "greeting_message",
    "status",
    "document_refs",
    "source_urls",
    "routing",
)


def _conflict_from(exc: IntegrityError) -> ValidationFailure:
    constraint = unique_constraint_name(str(exc.orig))
    if constraint is None:
        return ValidationFailure(f"Constraint violation: {exc.orig}")
    column = field_for_constraint(constraint)
    return ConflictFailure(
        f"Duplicate value for {column} ({constraint})",
        field=column,
        constraint=constraint,
    )


class AgentRepository:
    """Reads and writes organizations and agents.

    Args:
        session_factory: Factory for sessions on the already-migrated schema.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def create_organization_with_agents(
        self,
        organization: Organization,
        agents: Sequence[Agent],
    ) -> tuple[Organization, list[Agent]]:
        """Insert one organization and its agents in a single transaction.

        Either every row commits or none does.

        Raises:
            ValidationFailure: No agents were given.
            ConflictFailure: Duplicate organization id/name or agent
                name/trigger code.
            PersistenceFailure: Any other database error.
        """
        if not agents:
            raise ValidationFailure("At least one agent is required", field="agents")
        for agent in agents:
            agent.organization_id = organization.id

        try:
            async with transaction(self._session_factory) as session:
                if await session.get(Organization, organization.id) is not None:
                    raise ConflictFailure(
                        f"Organization '{organization.id}' already exists",
                        field="id",
                        constraint="organizations.id",
                    )
                session.add(organization)
                await session.flush()
                session.add_all(agents)
                await session.flush()
        except IntegrityError as exc:
            logger.warning("persist_conflict", organization_id=organization.id, error=str(exc.orig))
            raise _conflict_from(exc) from exc
        except SQLAlchemyError as exc:
            logger.error("persist_failed", organization_id=organization.id, error=str(exc))
            raise PersistenceFailure(f"Database error: {exc}") from exc

        logger.info(
            "organization_persisted",
            organization_id=organization.id,
            agent_ids=[agent.id for agent in agents],
        )
        return organization, list(agents)

    async def list_agents_for_owner(self, owner_id: str) -> list[Agent]:
        """Agents whose parent organization is owned by ``owner_id``."""
        async with transaction(self._session_factory) as session:
            result = await session.execute(
                select(Agent)
                .join(Organization, Agent.organization_id == Organization.id)
                .where(Organization.owner_id == owner_id)
                .order_by(Agent.created_at, Agent.id)
            )
            return list(result.scalars().all())

    async def get_agent_by_id(self, agent_id: str) -> Agent | None:
        """Look up an agent by id without an ownership check."""
        async with transaction(self._session_factory) as session:
            return await session.get(Agent, agent_id)

    async def get_organization(self, organization_id: str) -> Organization | None:
        async with transaction(self._session_factory) as session:
            return await session.get(Organization, organization_id)

    async def upsert_agent(self, owner_id: str, agent: Agent) -> Agent:
        """Write a full agent record, creating it if it does not exist.

        Both the target organization and, for an existing agent, its current
        organization must belong to ``owner_id``.

        Raises:
            ValidationFailure: Organization missing or not owned by the caller.
            ConflictFailure: Duplicate agent name or trigger code.
            PersistenceFailure: Any other database error.
        """
        try:
            async with transaction(self._session_factory) as session:
                organization = await session.get(Organization, agent.organization_id)
                if organization is None or organization.owner_id != owner_id:
                    raise ValidationFailure(
                        f"Organization '{agent.organization_id}' not found",
                        field="organization_id",
                    )
                existing = await session.get(Agent, agent.id)
                if existing is None:
                    session.add(agent)
                    await session.flush()
                    return agent

                current_org = await session.get(Organization, existing.organization_id)
                if current_org is None or current_org.owner_id != owner_id:
                    raise ValidationFailure(f"Agent '{agent.id}' not found", field="id")
                for name in _AGENT_FIELDS:
                    setattr(existing, name, getattr(agent, name))
                existing.updated_at = utc_now()
                await session.flush()
                return existing
        except IntegrityError as exc:
            raise _conflict_from(exc) from exc
        except SQLAlchemyError as exc:
            logger.error("upsert_failed", agent_id=agent.id, error=str(exc))
            raise PersistenceFailure(f"Database error: {exc}") from exc
