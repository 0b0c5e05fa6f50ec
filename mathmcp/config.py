"""
Gateway Configuration

Settings are read from environment variables; a .env file in the working
directory is loaded first.

- MATHMCP_LOG_LEVEL: logging level (default: INFO)
- MATHMCP_SESSION_IDLE_TTL: seconds before an agent session with no open
  legs is evicted from memory (default: 900)
- MATHMCP_CLEANUP_INTERVAL: seconds between eviction sweeps (default: 60)
- MATHMCP_LEG_IDLE_TIMEOUT: seconds of silence after which a leg is closed
  by the server. Unset (the default) means legs are never closed for
  missing keep-alives.
- MATHMCP_LEG_QUEUE_SIZE: outbound frames buffered per leg (default: 200)
- MATHMCP_STATUS_LIVE_COUNT: "true" to report the in-memory session count
  in /status instead of the constant 0
- MATHMCP_DEFAULT_AGENT_NAME: name given to agents created without one
- MATHMCP_HOST / MATHMCP_PORT: bind address for `python -m mathmcp`

Storage settings are documented in mathmcp.storage.factory.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from mathmcp.session.agent import DEFAULT_AGENT_NAME


@dataclass
class GatewaySettings:
    """
    Configuration for the gateway and session registry.

    Attributes:
        log_level: Root logging level name
        session_idle_ttl_seconds: Idle eviction threshold for agent sessions
        cleanup_interval_seconds: Eviction sweep interval
        leg_idle_timeout_seconds: Server-side leg idle timeout (None = disabled)
        leg_queue_size: Per-leg outbound queue depth
        status_live_count: Report live session count in /status
        default_agent_name: Fallback agent name
        host: Bind host for the standalone server
        port: Bind port for the standalone server
    """
    log_level: str = "INFO"
    session_idle_ttl_seconds: float = 900.0
    cleanup_interval_seconds: float = 60.0
    leg_idle_timeout_seconds: float | None = None
    leg_queue_size: int = 200
    status_live_count: bool = False
    default_agent_name: str = DEFAULT_AGENT_NAME
    host: str = "127.0.0.1"
    port: int = 8000


def _optional_float(value: str | None) -> float | None:
    if value is None or value.strip() == "":
        return None
    number = float(value)
    return number if number > 0 else None


def settings_from_env(load_env_file: bool = True) -> GatewaySettings:
    """Create GatewaySettings from environment variables."""
    if load_env_file:
        load_dotenv()

    return GatewaySettings(
        log_level=os.getenv("MATHMCP_LOG_LEVEL", "INFO").upper(),
        session_idle_ttl_seconds=float(os.getenv("MATHMCP_SESSION_IDLE_TTL", "900")),
        cleanup_interval_seconds=float(os.getenv("MATHMCP_CLEANUP_INTERVAL", "60")),
        leg_idle_timeout_seconds=_optional_float(os.getenv("MATHMCP_LEG_IDLE_TIMEOUT")),
        leg_queue_size=int(os.getenv("MATHMCP_LEG_QUEUE_SIZE", "200")),
        status_live_count=os.getenv("MATHMCP_STATUS_LIVE_COUNT", "").lower() == "true",
        default_agent_name=os.getenv("MATHMCP_DEFAULT_AGENT_NAME", DEFAULT_AGENT_NAME),
        host=os.getenv("MATHMCP_HOST", "127.0.0.1"),
        port=int(os.getenv("MATHMCP_PORT", "8000")),
    )
