"""Agent Studio - provisioning backend for channel-bound conversational agents."""

__version__ = "0.1.0"
