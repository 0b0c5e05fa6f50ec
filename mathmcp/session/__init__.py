# Agent Sessions
# Per-agent identity, open legs, dispatch, and the registry that owns them

from mathmcp.session.agent import (
    AgentSession,
    DispatchOutcome,
    AGENT_ID_PREFIX,
    DEFAULT_AGENT_NAME,
    new_agent_id,
    is_valid_agent_id,
)
from mathmcp.session.leg import Leg
from mathmcp.session.registry import AgentSessionRegistry

__all__ = [
    "AgentSession",
    "DispatchOutcome",
    "AGENT_ID_PREFIX",
    "DEFAULT_AGENT_NAME",
    "new_agent_id",
    "is_valid_agent_id",
    "Leg",
    "AgentSessionRegistry",
]
