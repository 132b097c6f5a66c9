"""
Pytest configuration and fixtures for sheetflow tests.

Every test gets its own SQLite database under ``tmp_path`` so the row store
and schema store can be exercised without an external database server.
"""

import os

# The module-level app must not try to reach the configured database.
os.environ.setdefault("SKIP_DB_INIT", "1")

from pathlib import Path

import pytest

from sheetflow.api.schemas.shared import SourceKind, SourceReference
from sheetflow.db.session import build_engine
from sheetflow.domain.imports.inference import SchemaInferenceEngine
from sheetflow.domain.pipeline import PipelineCoordinator, build_context


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sheetflow-test.db'}", timeout_seconds=5)
    yield engine
    engine.dispose()


@pytest.fixture
def write_csv(tmp_path):
    """Write ``text`` to a CSV under tmp_path and return a file SourceReference for it."""

    def _write(name: str, text: str) -> SourceReference:
        path = Path(tmp_path) / name
        path.write_text(text, encoding="utf-8")
        return SourceReference(kind=SourceKind.FILE, location=str(path), original_name=name)

    return _write


@pytest.fixture
def coordinator(engine):
    context = build_context(
        engine,
        inference=SchemaInferenceEngine(sample_rows=100, match_threshold=1.0),
        executor_batch_size=2,
    )
    coordinator = PipelineCoordinator(context)
    yield coordinator
    coordinator.shutdown()

