from __future__ import annotations
from typing import Optional

# group key for records whose owner exited before it could be named
UNRESOLVED_PROCESS = "<unresolved>"


def group_key(process_name: Optional[str]) -> str:
    return process_name or UNRESOLVED_PROCESS


def simple_process_name(name: str) -> str:
    """Drop '.' separators so 'svc.host' reads as one token in the totals view."""
    return name.replace(".", "")
