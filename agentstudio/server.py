"""FastAPI application for Agent Studio.

Endpoints:
- Deploy: provision an organization + agent (activation, documents, persistence)
- Agents: list, fetch and rewrite agent configurations
- Uploads: standalone document ingestion and vendor listing
- Activation: regenerate an agent's activation image
- Presets: industry defaults for greeting, persona and task

Caller identity arrives in the ``owner_header`` request header, set by the
identity provider in front of this service.
"""

import json
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from agentstudio import __version__
from agentstudio.catalog import AgentCatalog
from agentstudio.config import Settings, get_settings
from agentstudio.db.engine import build_engine, build_session_factory
from agentstudio.db.migrations import run_migrations
from agentstudio.errors import ProvisioningError, ValidationFailure, VendorFailure
from agentstudio.logging import configure_logging, get_logger
from agentstudio.metrics import metrics
from agentstudio.middleware import RequestTracingMiddleware
from agentstudio.presets import INDUSTRY_PRESETS
from agentstudio.provisioning import ProvisioningOrchestrator, build_agent
from agentstudio.repository import AgentRepository
from agentstudio.schemas.agents import (
    ActivationRequest,
    ActivationResponse,
    AgentConfig,
    AgentUpsert,
    DeployRequest,
    DeployResponse,
    IndustryPresetResponse,
    OrganizationRecord,
    UploadResponse,
)
from agentstudio.vendors import (
    ActivationClient,
    ActivationDegraded,
    DocumentIngestionClient,
    DocumentUpload,
    VendorConfig,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Migrate the schema and wire adapters, repository and orchestrator."""
    settings: Settings = app.state.settings

    configure_logging(
        json_format=not settings.debug,
        level="DEBUG" if settings.debug else settings.log_level,
    )
    logger.info("server_starting", version=__version__, host=settings.host, port=settings.port)

    engine = build_engine(settings.database_url, echo=settings.debug)
    applied = await run_migrations(engine)
    logger.info("database_ready", migrations_applied=applied)

    session_factory = build_session_factory(engine)
    vendor_config = VendorConfig.from_settings(settings)
    http = httpx.AsyncClient(
        timeout=vendor_config.timeout_seconds,
        transport=app.state.vendor_transport,
    )

    app.state.repository = AgentRepository(session_factory)
    app.state.catalog = AgentCatalog(session_factory)
    app.state.ingestion = DocumentIngestionClient(vendor_config, http)
    app.state.activation = ActivationClient(vendor_config, http)
    app.state.orchestrator = ProvisioningOrchestrator(
        app.state.repository,
        app.state.ingestion,
        app.state.activation,
    )
    yield
    await http.aclose()
    await engine.dispose()
    logger.info("server_shutdown")


def require_owner(request: Request) -> str:
    """Caller identity from the identity provider's header."""
    owner_id = request.headers.get(request.app.state.settings.owner_header)
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return owner_id


def _vendor_response(exc: VendorFailure) -> JSONResponse:
    """Relay a vendor failure with the vendor's own status and body."""
    return JSONResponse(
        status_code=(
            exc.vendor_status
            if exc.vendor_status and exc.vendor_status >= 400
            else status.HTTP_502_BAD_GATEWAY
        ),
        content=jsonable_encoder({"success": False, "error": exc.message, "details": exc.body}),
    )


async def _read_upload(upload: UploadFile) -> DocumentUpload:
    return DocumentUpload(
        filename=upload.filename or "document",
        content_type=upload.content_type or "application/octet-stream",
        content=await upload.read(),
    )


def create_app(
    settings: Settings | None = None,
    vendor_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment.
        vendor_transport: Transport for outbound vendor calls (tests pass
            an ``httpx.MockTransport``).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Agent Studio",
        description="Provisioning backend for channel-bound conversational agents",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.vendor_transport = vendor_transport
    app.add_middleware(RequestTracingMiddleware, owner_header=settings.owner_header)

    @app.exception_handler(ProvisioningError)
    async def provisioning_error_handler(request: Request, exc: ProvisioningError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder({"success": False, "error": exc.to_dict()}),
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    @app.get("/metrics", include_in_schema=False)
    async def get_metrics() -> PlainTextResponse:
        return PlainTextResponse(
            content=metrics.to_prometheus(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @app.get("/metrics/json")
    async def get_metrics_json() -> dict:
        return metrics.get_stats()

    # =========================================================================
    # Deploy
    # =========================================================================

    @app.post("/v1/deploy", response_model=DeployResponse, status_code=201)
    async def deploy(
        request: Request,
        payload: str = Form(..., description="JSON: {organization, agent}"),
        documents: list[UploadFile] | None = File(default=None),
        owner_id: str = Depends(require_owner),
    ):
        """Provision an organization and its agent.

        Returns the committed records, or the failure with the steps the
        attempt went through.
        """
        try:
            body = DeployRequest.model_validate_json(payload)
        except ValidationError as exc:
            raise ValidationFailure(
                "Invalid deploy payload",
                errors=json.loads(exc.json(include_url=False)),
            ) from exc

        uploads = [await _read_upload(doc) for doc in documents or []]
        outcome = await request.app.state.orchestrator.deploy(
            owner_id, body.organization, body.agent, uploads
        )
        if not outcome.success:
            return JSONResponse(
                status_code=outcome.error.status_code,
                content=jsonable_encoder(
                    {"success": False, "error": outcome.error.to_dict(), "steps": outcome.steps}
                ),
            )

        catalog: AgentCatalog = request.app.state.catalog
        agents = [await catalog.get_agent_by_id(agent.id) for agent in outcome.agents]
        return DeployResponse(
            organization=OrganizationRecord.model_validate(outcome.organization),
            agents=[agent for agent in agents if agent is not None],
            steps=outcome.steps,
            activation_degraded=outcome.activation_degraded,
        )

    # =========================================================================
    # Agents
    # =========================================================================

    @app.get("/v1/agents", response_model=list[AgentConfig])
    async def list_agents(request: Request, owner_id: str = Depends(require_owner)):
        """List the caller's agents."""
        return await request.app.state.catalog.list_agents_for_owner(owner_id)

    @app.get("/v1/agents/{agent_id}", response_model=AgentConfig)
    async def get_agent(agent_id: str, request: Request, owner_id: str = Depends(require_owner)):
        """Get one of the caller's agents by id with its organization profile."""
        agent = await request.app.state.catalog.get_agent_by_id(agent_id)
        organization = (
            await request.app.state.repository.get_organization(agent.organization_id)
            if agent
            else None
        )
        if organization is None or organization.owner_id != owner_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Agent '{agent_id}' not found",
            )
        return agent

    @app.put("/v1/agents/{agent_id}", response_model=AgentConfig)
    async def upsert_agent(
        agent_id: str,
        body: AgentUpsert,
        request: Request,
        owner_id: str = Depends(require_owner),
    ):
        """Rewrite an agent's full configuration, creating it if missing."""
        repository: AgentRepository = request.app.state.repository
        organization = await repository.get_organization(body.organization_id)
        if organization is None or organization.owner_id != owner_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Organization '{body.organization_id}' not found",
            )
        record = build_agent(body, organization)
        record.id = agent_id
        record.qr_code_base64 = body.activation_payload
        await repository.upsert_agent(owner_id, record)
        return await request.app.state.catalog.get_agent_by_id(agent_id)

    # =========================================================================
    # Vendor integrations
    # =========================================================================

    @app.post("/v1/uploads", response_model=UploadResponse)
    async def upload_document(
        request: Request,
        file: UploadFile = File(...),
        agent_id: str = Form(..., min_length=1),
        organization_id: str = Form(..., min_length=1),
        owner_id: str = Depends(require_owner),
    ):
        """Forward one document to the ingestion service."""
        document = await _read_upload(file)
        try:
            ingested = await request.app.state.ingestion.ingest(document, agent_id, organization_id)
        except VendorFailure as exc:
            return _vendor_response(exc)
        return UploadResponse(data={"id": ingested.reference_id, "url": ingested.content_url})

    @app.get("/v1/uploads/{agent_id}")
    async def list_uploads(agent_id: str, request: Request, owner_id: str = Depends(require_owner)):
        """List the documents the ingestion service holds for an agent."""
        try:
            data = await request.app.state.ingestion.list_documents(agent_id)
        except VendorFailure as exc:
            return _vendor_response(exc)
        return {"success": True, "data": data}

    @app.post("/v1/integrations/activation", response_model=ActivationResponse)
    async def request_activation(
        body: ActivationRequest,
        request: Request,
        owner_id: str = Depends(require_owner),
    ):
        """Generate (or regenerate) an agent's activation image."""
        result = await request.app.state.activation.request_activation(
            body.agent_id, body.agent_name, body.trigger_code
        )
        if isinstance(result, ActivationDegraded):
            raise VendorFailure(
                "Failed to generate activation code",
                vendor="activation",
                vendor_status=result.vendor_status,
                body=result.reason,
            )
        return ActivationResponse(qr_code_url=result.payload, used_trigger_code=result.trigger_code)

    @app.get("/v1/presets", response_model=list[IndustryPresetResponse])
    async def list_presets():
        """Industry presets for greeting, persona and task."""
        return [
            IndustryPresetResponse(
                industry=industry,
                initial_greeting=preset.initial_greeting,
                persona=preset.persona,
                task=preset.task,
            )
            for industry, preset in INDUSTRY_PRESETS.items()
        ]

    return app


# Application instance for uvicorn
app = create_app()
