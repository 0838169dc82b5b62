from __future__ import annotations
import os
from pathlib import Path
from typing import Optional

USER_CONFIG_DIR = Path("~/.config/connmon").expanduser()


def to_abs_path(p: Optional[str | os.PathLike]) -> Optional[Path]:
    """Locate a config file named on the command line.

    A relative name is looked up in the working directory first and falls
    back to ~/.config/connmon. Existence is only checked for the working
    directory; load_config_file reports a missing file.
    """
    if not p:
        return None
    pp = Path(p).expanduser()
    if pp.is_absolute():
        return pp.resolve()
    in_cwd = Path.cwd() / pp
    if in_cwd.exists():
        return in_cwd.resolve()
    return (USER_CONFIG_DIR / pp).resolve()
