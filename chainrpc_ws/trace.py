"""Raw wire trace for the WebSocket provider.

Frames sent and received by the provider can be appended to a plain text
file for offline debugging of fragmentation and correlation problems. The
trace is separate from ``logging`` so it can capture full frame bodies
without flooding application logs.

Tracing is opt-in: set ``CHAINRPC_WS_TRACE_LOG`` to a file path. Leaving it
unset or setting it to an empty string disables the trace.

Usage:
    from chainrpc_ws.trace import trace, trace_write, resolve_trace_path

    trace("provider", "<< {\"id\":1,...}")

    # Explicit path resolution:
    path = resolve_trace_path("CHAINRPC_WS_TRACE_LOG")
    trace_write("provider", msg, path)
"""

import os
from datetime import datetime
from typing import Optional, Set

TRACE_ENV_VAR = "CHAINRPC_WS_TRACE_LOG"

# Cache of directories we've already ensured exist, to avoid
# repeated os.makedirs calls on every trace write.
_ensured_dirs: Set[str] = set()


def _ensure_parent_dirs(file_path: str) -> None:
    """Create parent directories for a file path if they don't exist."""
    parent = os.path.dirname(os.path.abspath(file_path))
    if parent not in _ensured_dirs:
        os.makedirs(parent, exist_ok=True)
        _ensured_dirs.add(parent)


def resolve_trace_path(*env_vars: str) -> Optional[str]:
    """Resolve trace file path from environment variables.

    Checks env vars in order and returns the first non-empty value. An
    empty string value means tracing is explicitly disabled.

    Args:
        *env_vars: Environment variable names to check, in priority order.

    Returns:
        Resolved file path, or None if tracing is disabled.
    """
    for var in env_vars:
        value = os.environ.get(var)
        if value == "":
            return None
        if value:
            return value
    return None


def trace_write(
    component: str,
    msg: str,
    trace_path: Optional[str],
) -> None:
    """Write a trace message to the given path.

    Creates parent directories automatically. Never raises.

    Args:
        component: Component name for the line prefix (e.g. "provider").
        msg: Message to write.
        trace_path: File path to write to. If None, does nothing.
    """
    if not trace_path:
        return
    try:
        _ensure_parent_dirs(trace_path)
        with open(trace_path, "a") as f:
            ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
            f.write(f"[{ts}] [{component}] {msg}\n")
            f.flush()
    except OSError:
        pass  # tracing must never break the transport


def trace(component: str, msg: str) -> None:
    """Write a trace message to the file named by ``CHAINRPC_WS_TRACE_LOG``."""
    path = resolve_trace_path(TRACE_ENV_VAR)
    trace_write(component, msg, path)


__all__ = [
    "TRACE_ENV_VAR",
    "resolve_trace_path",
    "trace",
    "trace_write",
]
