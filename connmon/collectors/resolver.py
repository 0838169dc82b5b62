from __future__ import annotations
import logging
import platform
from typing import Callable, Dict, Iterable, Optional, Tuple

import psutil

logger = logging.getLogger(__name__)

ProcessLister = Callable[[], Iterable[Tuple[int, Optional[str]]]]


def display_name(name: Optional[str], system: Optional[str] = None) -> Optional[str]:
    """Windows image names carry '.exe'; report them as 'chrome', not 'chrome.exe'."""
    if name and (system or platform.system()) == "Windows" and name.lower().endswith(".exe"):
        return name[:-4]
    return name


def list_processes() -> list[tuple[int, Optional[str]]]:
    # process_iter skips processes that exit while it walks the list
    system = platform.system()
    return [(p.info["pid"], display_name(p.info["name"], system))
            for p in psutil.process_iter(["pid", "name"])]


class ProcessNameResolver:
    """Best-effort pid -> name lookup against the live process list.

    ``refresh()`` is called once per snapshot; ``resolve()`` then answers
    from that table and returns None for pids that are gone.  A lister
    failure of any kind leaves every pid unresolved for that snapshot.
    """

    def __init__(self, lister: Optional[ProcessLister] = None):
        self.lister = lister or list_processes
        self.names: Dict[int, Optional[str]] = {}

    def refresh(self) -> None:
        try:
            self.names = {int(pid): name for pid, name in self.lister()}
        except Exception:
            logger.exception("process list unavailable, names left unresolved")
            self.names = {}

    def resolve(self, pid: int) -> Optional[str]:
        return self.names.get(pid) or None
