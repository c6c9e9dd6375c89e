import pytest

import config
from schemas.audit import AuditTrail


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """No JSONL files and no real LLM calls during tests."""
    monkeypatch.setattr(config, "STRUCTURED_LOG_ENABLED", False)
    monkeypatch.setattr(config, "LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(config, "USE_STUB_LLM", True)


@pytest.fixture
def audit():
    return AuditTrail(session_id="test")
