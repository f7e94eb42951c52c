import logging

import pytest

from evidence_graph.config import PipelineConfig, get_preset_config
from evidence_graph.errors import ConfigurationError
from evidence_graph.logging_config import configure_logging


def test_presets():
    assert get_preset_config("high_precision").similarity_threshold == 0.88
    assert get_preset_config("balanced").similarity_threshold == 0.72
    assert get_preset_config("fast").embedding_dimensions == 128
    with pytest.raises(ConfigurationError):
        get_preset_config("does_not_exist")


def test_from_env(monkeypatch):
    monkeypatch.setenv("EVIDENCE_GRAPH_PRESET", "high_recall")
    monkeypatch.setenv("EVIDENCE_GRAPH_EMBED_DIMS", "64")
    monkeypatch.setenv("EVIDENCE_GRAPH_EMBED_MODEL", "test-model")

    config = PipelineConfig.from_env()

    assert config.clustering.similarity_threshold == 0.78
    assert config.embedding.dimensions == 64
    assert config.clustering.embedding_dimensions == 64
    assert config.embedding.model_id == "test-model"


@pytest.mark.parametrize("value", ["abc", "0", "-3"])
def test_from_env_rejects_bad_dimensions(monkeypatch, value):
    monkeypatch.delenv("EVIDENCE_GRAPH_PRESET", raising=False)
    monkeypatch.setenv("EVIDENCE_GRAPH_EMBED_DIMS", value)
    with pytest.raises(ConfigurationError):
        PipelineConfig.from_env()


def test_configure_logging_is_idempotent(mocker):
    root = logging.getLogger()
    mocker.patch.object(root, "handlers", [])
    mocker.patch.object(root, "level", root.level)

    configure_logging(logging.DEBUG)
    configure_logging(logging.INFO)

    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
