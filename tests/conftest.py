"""Shared fixtures."""

import pytest
from prometheus_client import CollectorRegistry

from semsearch.common.metrics import MetricsCollector
from semsearch.embeddings.gateway import EmbeddingGateway

from .fakes import SCENARIO_LEXICAL_HITS, SCENARIO_VECTOR_HITS, ScriptedStore, StaticProvider


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector("test-service", registry=CollectorRegistry())


@pytest.fixture
def provider() -> StaticProvider:
    return StaticProvider([1.0, 0.0, 0.0])


@pytest.fixture
def gateway(provider: StaticProvider) -> EmbeddingGateway:
    return EmbeddingGateway([provider])


@pytest.fixture
def scenario_store() -> ScriptedStore:
    return ScriptedStore(SCENARIO_VECTOR_HITS, SCENARIO_LEXICAL_HITS)
