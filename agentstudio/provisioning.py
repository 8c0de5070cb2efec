"""Provisioning orchestrator.

Turns an organization draft and an agent draft into committed rows plus
vendor-side artifacts:

    idle -> requesting_activation -> uploading_documents -> persisting -> succeeded
                                            |                  |
                                            +----> failed <----+

The activation step never blocks progress: a failure degrades to an empty
activation payload. Document uploads run concurrently and all must
succeed before anything is written. Persistence is one transaction, so a
failed attempt leaves no rows behind and may simply be resubmitted.

Vendor artifacts created by a failed attempt (an activation image,
documents ingested before a sibling upload failed) are not cleaned up.
They are logged as ``vendor_artifacts_orphaned`` for reconciliation.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from agentstudio.db.models import Agent, Organization, generate_uuid
from agentstudio.errors import ProvisioningError, UnexpectedFailure
from agentstudio.logging import get_logger
from agentstudio.metrics import record_deploy
from agentstudio.presets import preset_for
from agentstudio.repository import AgentRepository
from agentstudio.schemas.agents import AgentDraft, OrganizationDraft
from agentstudio.vendors.activation import (
    ActivationClient,
    ActivationDegraded,
    ActivationOk,
    ActivationResult,
)
from agentstudio.vendors.ingestion import DocumentIngestionClient, DocumentUpload

logger = get_logger(__name__)


class ProvisioningStep(str, Enum):
    """Position of a provisioning attempt in the deploy state machine."""

    IDLE = "idle"
    REQUESTING_ACTIVATION = "requesting_activation"
    UPLOADING_DOCUMENTS = "uploading_documents"
    PERSISTING = "persisting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS: dict[ProvisioningStep, frozenset[ProvisioningStep]] = {
    ProvisioningStep.IDLE: frozenset({ProvisioningStep.REQUESTING_ACTIVATION}),
    ProvisioningStep.REQUESTING_ACTIVATION: frozenset({ProvisioningStep.UPLOADING_DOCUMENTS}),
    ProvisioningStep.UPLOADING_DOCUMENTS: frozenset(
        {ProvisioningStep.PERSISTING, ProvisioningStep.FAILED}
    ),
    ProvisioningStep.PERSISTING: frozenset({ProvisioningStep.SUCCEEDED, ProvisioningStep.FAILED}),
    ProvisioningStep.SUCCEEDED: frozenset(),
    ProvisioningStep.FAILED: frozenset(),
}


class InvalidTransition(RuntimeError):
    """Raised when an attempt is moved along an edge the state machine lacks."""


@dataclass
class ProvisioningAttempt:
    """Working state of one deploy call. Never persisted."""

    owner_id: str
    organization: Organization
    agents: list[Agent]
    documents: list[DocumentUpload] = field(default_factory=list)
    step: ProvisioningStep = ProvisioningStep.IDLE
    history: list[ProvisioningStep] = field(default_factory=lambda: [ProvisioningStep.IDLE])
    document_refs: list[str] = field(default_factory=list)
    content_urls: list[str] = field(default_factory=list)
    activation: ActivationResult | None = None
    error: ProvisioningError | None = None

    def advance(self, step: ProvisioningStep) -> None:
        if step not in _TRANSITIONS[self.step]:
            raise InvalidTransition(f"{self.step.value} -> {step.value}")
        self.step = step
        self.history.append(step)

    @property
    def agent(self) -> Agent:
        """The agent the deploy's documents and activation belong to."""
        return self.agents[0]

    @property
    def activation_payload(self) -> str | None:
        if isinstance(self.activation, ActivationOk):
            return self.activation.payload
        return None


@dataclass
class DeployOutcome:
    """Aggregate pass/fail result of one deploy call."""

    attempt: ProvisioningAttempt
    organization: Organization | None = None
    agents: list[Agent] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.attempt.step is ProvisioningStep.SUCCEEDED

    @property
    def error(self) -> ProvisioningError | None:
        return self.attempt.error

    @property
    def steps(self) -> list[str]:
        return [step.value for step in self.attempt.history]

    @property
    def activation_degraded(self) -> str | None:
        if isinstance(self.attempt.activation, ActivationDegraded):
            return self.attempt.activation.reason
        return None


def _merge(*lists: Sequence[str]) -> list[str]:
    """Concatenate, dropping repeats and keeping first-seen order."""
    return list(dict.fromkeys(item for items in lists for item in items))


def build_organization(owner_id: str, draft: OrganizationDraft) -> Organization:
    return Organization(
        id=draft.id or generate_uuid(),
        name=draft.name,
        owner_id=owner_id,
        website=draft.website,
        industry=draft.industry,
        short_description=draft.short_description,
        is_active=draft.is_active,
    )


def build_agent(draft: AgentDraft, organization: Organization) -> Agent:
    """Agent row for a draft; blank texts come from the industry preset."""
    preset = preset_for(organization.industry, organization.name)
    return Agent(
        id=draft.id or generate_uuid(),
        organization_id=organization.id,
        name=draft.name,
        language=draft.language,
        tone=draft.tone,
        persona_prompt=draft.persona_prompt or preset.persona,
        task_prompt=draft.task_prompt or preset.task,
        greeting_message=draft.greeting_message or preset.initial_greeting,
        trigger_code=draft.trigger_code,
        allowed_actions=[flag.value for flag in draft.allowed_actions],
        status=draft.status.value,
        document_refs=list(draft.document_refs),
        source_urls=list(draft.source_urls),
        routing=draft.model_routing.model_dump() if draft.model_routing else {},
    )


class ProvisioningOrchestrator:
    """Sequences activation, document ingestion and persistence.

    Each ``deploy`` call works on its own ``ProvisioningAttempt``; the
    orchestrator holds no per-attempt state, so one instance serves
    concurrent deploys.
    """

    def __init__(
        self,
        repository: AgentRepository,
        ingestion: DocumentIngestionClient,
        activation: ActivationClient,
    ):
        self.repository = repository
        self.ingestion = ingestion
        self.activation = activation

    def prepare(
        self,
        owner_id: str,
        organization: OrganizationDraft,
        agent: AgentDraft,
        documents: Sequence[DocumentUpload] = (),
    ) -> ProvisioningAttempt:
        org = build_organization(owner_id, organization)
        return ProvisioningAttempt(
            owner_id=owner_id,
            organization=org,
            agents=[build_agent(agent, org)],
            documents=list(documents),
        )

    async def deploy(
        self,
        owner_id: str,
        organization: OrganizationDraft,
        agent: AgentDraft,
        documents: Sequence[DocumentUpload] = (),
    ) -> DeployOutcome:
        """Run one provisioning attempt to completion.

        The drafts must already be validated (names and trigger present).
        Expected failures are reported on the outcome, never raised.
        """
        started = time.perf_counter()
        attempt = self.prepare(owner_id, organization, agent, documents)
        log = logger.bind(
            organization_id=attempt.organization.id,
            agent_id=attempt.agent.id,
            owner_id=owner_id,
        )
        log.info("deploy_started", documents=len(attempt.documents))

        await self._request_activation(attempt)
        outcome = DeployOutcome(attempt=attempt)
        if await self._upload_documents(attempt):
            outcome = await self._persist(attempt)

        duration = time.perf_counter() - started
        if outcome.success:
            record_deploy("succeeded", duration)
            log.info("deploy_succeeded", steps=outcome.steps, duration_ms=round(duration * 1000, 2))
        else:
            record_deploy(attempt.error.kind if attempt.error else "failed", duration)
            log.warning(
                "deploy_failed",
                steps=outcome.steps,
                error=attempt.error.to_dict() if attempt.error else None,
            )
            self._log_orphans(attempt)
        return outcome

    async def _request_activation(self, attempt: ProvisioningAttempt) -> None:
        attempt.advance(ProvisioningStep.REQUESTING_ACTIVATION)
        agent = attempt.agent
        try:
            attempt.activation = await self.activation.request_activation(
                agent.id, agent.name, agent.trigger_code
            )
        except Exception as exc:
            logger.exception("activation_crashed", agent_id=agent.id)
            attempt.activation = ActivationDegraded(reason=str(exc), trigger_code=agent.trigger_code)

    async def _upload_documents(self, attempt: ProvisioningAttempt) -> bool:
        attempt.advance(ProvisioningStep.UPLOADING_DOCUMENTS)
        agent, organization = attempt.agent, attempt.organization
        results = await asyncio.gather(
            *(self.ingestion.ingest(doc, agent.id, organization.id) for doc in attempt.documents),
            return_exceptions=True,
        )

        failures = []
        for document, result in zip(attempt.documents, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures.append((document, result))
            else:
                attempt.document_refs.append(result.reference_id)
                if result.content_url:
                    attempt.content_urls.append(result.content_url)

        if not failures:
            return True

        document, exc = failures[0]
        if isinstance(exc, ProvisioningError):
            error = exc
        else:
            logger.error("document_ingest_crashed", document=document.filename, exc_info=exc)
            error = UnexpectedFailure(
                f"Upload of '{document.filename}' failed unexpectedly: {exc}",
                document=document.filename,
            )
        logger.warning(
            "document_ingest_failed",
            document=document.filename,
            failed=[doc.filename for doc, _ in failures],
        )
        self._fail(attempt, error)
        return False

    async def _persist(self, attempt: ProvisioningAttempt) -> DeployOutcome:
        attempt.advance(ProvisioningStep.PERSISTING)
        agent = attempt.agent
        agent.document_refs = _merge(agent.document_refs, attempt.document_refs)
        agent.source_urls = _merge(agent.source_urls, attempt.content_urls)
        agent.qr_code_base64 = attempt.activation_payload

        try:
            organization, agents = await self.repository.create_organization_with_agents(
                attempt.organization, attempt.agents
            )
        except ProvisioningError as exc:
            self._fail(attempt, exc)
            return DeployOutcome(attempt=attempt)
        except Exception as exc:
            logger.exception("persist_crashed", organization_id=attempt.organization.id)
            self._fail(attempt, UnexpectedFailure(f"Unexpected error while saving: {exc}"))
            return DeployOutcome(attempt=attempt)

        attempt.advance(ProvisioningStep.SUCCEEDED)
        return DeployOutcome(attempt=attempt, organization=organization, agents=agents)

    @staticmethod
    def _fail(attempt: ProvisioningAttempt, error: ProvisioningError) -> None:
        attempt.error = error
        attempt.advance(ProvisioningStep.FAILED)

    @staticmethod
    def _log_orphans(attempt: ProvisioningAttempt) -> None:
        if attempt.activation_payload is None and not attempt.document_refs:
            return
        logger.warning(
            "vendor_artifacts_orphaned",
            organization_id=attempt.organization.id,
            agent_id=attempt.agent.id,
            activation_issued=attempt.activation_payload is not None,
            document_refs=attempt.document_refs,
        )
