"""
File utility functions.
"""

import os
from pathlib import Path


def ensure_dir(path: str | Path) -> Path:
    """Ensure directory exists, creating if necessary."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_text(path: str | Path, content: str, executable: bool = False) -> None:
    """
    Write text to file, creating parent directories if needed.

    Args:
        path: Destination file
        content: Text to write
        executable: Also set the owner/group/other execute bits (for shell scripts)
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content)
    if executable:
        mode = os.stat(p).st_mode
        os.chmod(p, mode | 0o111)
