"""Mic Guardian - microphone usage monitoring and attribution."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

try:
    __version__ = metadata.version("mic-guardian")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the guardian until interrupted; returns a process exit code."""
    from .app.main import run as _run

    return _run(list(argv) if argv is not None else None)


__all__ = ["__version__", "run"]
