"""
Exposes the version of geoutm
"""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_VERSION_FILE = Path(__file__).resolve().parents[1] / 'VERSION'


def _read_version_file() -> str | None:
    """Source-tree fallback; setup.py reads the same file when building."""
    try:
        return _VERSION_FILE.read_text(encoding='utf-8').strip()
    except OSError:
        return None


try:
    __version__ = version('geoutm')
except PackageNotFoundError:
    __version__ = _read_version_file()

__all__ = ['__version__']
