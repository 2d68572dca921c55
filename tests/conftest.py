"""Shared fixtures for the easyplug test-suite."""

from __future__ import annotations

import textwrap
import warnings
import zipfile
from pathlib import Path
from typing import Callable

import pytest


def build_archive(path: Path, entries: list[tuple[str, str | None]]) -> Path:
    """Write a zip archive.

    Each entry is ``(name, source)``; a ``None`` source writes an empty
    directory marker (the name should end with ``/``).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with warnings.catch_warnings():
        # duplicate entry names are written on purpose in some tests
        warnings.simplefilter("ignore", UserWarning)
        with zipfile.ZipFile(path, "w") as zf:
            for name, source in entries:
                if source is None:
                    zf.writestr(zipfile.ZipInfo(name), "")
                else:
                    zf.writestr(name, textwrap.dedent(source))
    return path


def _plugin_source(class_name: str, origin: str = "") -> str:
    return (
        f"class {class_name}:\n"
        f"    origin = {origin!r}\n"
        f"\n"
        f"    def __init__(self):\n"
        f"        self.created = True\n"
    )


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating archives relative to ``tmp_path``.

    Accepts either a dict ``{entry: source}`` or a list of
    ``(entry, source)`` pairs.
    """

    def _make(relative: str, entries) -> Path:
        if isinstance(entries, dict):
            entries = list(entries.items())
        return build_archive(tmp_path / relative, entries)

    return _make


@pytest.fixture
def plugin_source() -> Callable[..., str]:
    """Source for a trivial plugin class with a zero-argument constructor."""
    return _plugin_source
