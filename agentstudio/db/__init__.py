"""Database module for organization and agent persistence."""

from agentstudio.db.engine import build_engine, build_session_factory, transaction
from agentstudio.db.migrations import run_migrations
from agentstudio.db.models import Agent, AgentStatus, CapabilityFlag, Organization

__all__ = [
    "build_engine",
    "build_session_factory",
    "run_migrations",
    "transaction",
    "Agent",
    "AgentStatus",
    "CapabilityFlag",
    "Organization",
]
