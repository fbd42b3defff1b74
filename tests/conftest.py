"""Shared pytest fixtures for Shotgraph tests."""

import io
import itertools
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from shotgraph.api.main import create_app
from shotgraph.canvas.interaction import CanvasEngine
from shotgraph.core.asset_store import AssetStore
from shotgraph.core.config import ShotgraphConfig
from shotgraph.core.graph_store import GraphStore
from shotgraph.core.images import ImageRef


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ShotgraphConfig:
    """Create a test configuration rooted in the temporary directory.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        ShotgraphConfig instance for testing
    """
    return ShotgraphConfig(data_dir=temp_dir / "data", _env_file=None)


@pytest.fixture
def id_factory() -> Callable[[str], str]:
    """Deterministic id generator: ``Body-1``, ``edge-2``, ...

    Returns:
        Callable taking an id prefix
    """
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


@pytest.fixture
def store(test_config: ShotgraphConfig, id_factory) -> GraphStore:
    """Create a fresh graph store holding only the Output node.

    Returns:
        GraphStore with deterministic ids
    """
    return GraphStore(settings=test_config, id_factory=id_factory)


@pytest.fixture
def engine(store: GraphStore, test_config: ShotgraphConfig) -> CanvasEngine:
    """Create a canvas engine over the store at zoom 1 and no pan.

    Returns:
        CanvasEngine where screen and world coordinates coincide
    """
    return CanvasEngine(store, test_config)


@pytest.fixture
def asset_store(test_config: ShotgraphConfig) -> AssetStore:
    """Create an asset store backed by a temporary SQLite file.

    Returns:
        AssetStore instance for testing
    """
    return AssetStore(test_config.asset_db_path)


@pytest.fixture
def png_bytes() -> bytes:
    """Encode a tiny solid-colour PNG.

    Returns:
        Raw PNG file contents
    """
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_image(png_bytes: bytes) -> ImageRef:
    """Wrap the sample PNG as an ImageRef.

    Returns:
        ImageRef with mime type ``image/png``
    """
    return ImageRef.from_bytes(png_bytes)


@pytest.fixture
def test_client(test_config: ShotgraphConfig) -> Generator[TestClient, None, None]:
    """Create a TestClient for an application bound to the test configuration.

    The client is used as a context manager so the application lifespan
    (session setup and teardown) runs.

    Yields:
        TestClient instance
    """
    app = create_app(test_config)
    with TestClient(app) as client:
        yield client
