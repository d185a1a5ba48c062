"""Shared pytest configuration, marker assignment and image fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Attach suite markers based on test file path."""
    del config
    for item in items:
        parts = set(Path(str(item.fspath)).parts)
        if "e2e_tests" in parts:
            item.add_marker(pytest.mark.e2e)
        elif "unit_tests" in parts:
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def write_bmp() -> Callable[..., Path]:
    """Return a helper that writes a small valid BMP file."""

    def _write(path: Path, size: tuple[int, int] = (4, 4), color=(255, 0, 0)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path, format="BMP")
        return path

    return _write


@pytest.fixture
def write_corrupt() -> Callable[[Path], Path]:
    """Return a helper that writes a file with a .bmp name but garbage content."""

    def _write(path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"this is not a bitmap")
        return path

    return _write
