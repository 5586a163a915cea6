# listingai/conftest.py
import pytest
from fastapi.testclient import TestClient

from listingai.features.entitlements.service import EntitlementService
from listingai.features.entitlements.store import InMemoryEntitlementStore
from listingai.features.pipeline.config import GenerationMode, OcrMode, PipelineConfig
from listingai.features.pipeline.service import ContentPipeline


@pytest.fixture
def memory_store():
    """Fresh in-memory entitlement store per test."""
    return InMemoryEntitlementStore()


@pytest.fixture
def entitlements(memory_store):
    """Entitlement service with the production defaults (3-day trial, 2 free listings)."""
    return EntitlementService(memory_store, trial_days=3, free_quota=2)


@pytest.fixture
def fast_config():
    """Mock-mode pipeline config with no artificial delay."""
    return PipelineConfig(
        ocr_mode=OcrMode.ABSENT,
        generation_mode=GenerationMode.MOCK,
        mock_delay_seconds=0,
        vision_timeout_seconds=0.2,
        synthesis_timeout_seconds=0.2,
    )


@pytest.fixture
def mock_pipeline(fast_config):
    return ContentPipeline(fast_config)


@pytest.fixture
def app_state():
    """
    Install test services on the app and remove them afterwards.

    Tests assign app.state.entitlements / app.state.pipeline through the
    returned setter; api/deps.py reads them from there.
    """
    from listingai.main import app

    def install(entitlements=None, pipeline=None):
        if entitlements is not None:
            app.state.entitlements = entitlements
        if pipeline is not None:
            app.state.pipeline = pipeline
        return app

    yield install

    for name in ("entitlements", "pipeline"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def client(app_state, entitlements, mock_pipeline):
    """TestClient wired to the in-memory store and the instant mock pipeline."""
    app = app_state(entitlements=entitlements, pipeline=mock_pipeline)
    return TestClient(app)
