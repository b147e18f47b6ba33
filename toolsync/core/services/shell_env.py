"""
Shell snippets that put the exposure directory on PATH.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

POSIX_SHELLS = ("sh", "bash", "zsh", "dash", "ksh")
SUPPORTED_SHELLS = (*POSIX_SHELLS, "fish", "pwsh", "powershell")


def detect_shell(env: Mapping[str, str] | None = None) -> str:
    """Shell name from $SHELL, falling back to ``sh``."""
    env = os.environ if env is None else env
    name = Path(env.get("SHELL", "")).name
    return name if name in SUPPORTED_SHELLS else "sh"


def path_snippet(bin_dir: Path, shell: str) -> str:
    """Line to eval in ``shell`` so exposed tools are found first.

    Raises:
        ValueError: unsupported shell.
    """
    directory = str(bin_dir)
    if shell in POSIX_SHELLS:
        return f'export PATH="{directory}:$PATH"'
    if shell == "fish":
        return f"fish_add_path --prepend --path '{directory}'"
    if shell in ("pwsh", "powershell"):
        return f'$env:PATH = "{directory}" + [IO.Path]::PathSeparator + $env:PATH'
    raise ValueError(f"Unsupported shell '{shell}'. Supported: {', '.join(SUPPORTED_SHELLS)}")
