"""
Shared fixtures for bridge tests.
"""

import pytest

from bridge_helpers import OPERATOR, OWNER, ChainRelay, FakeClock
from ordbridge.core.bridge import OrdinalsBridge
from ordbridge.core.bridge_config import BridgeConfig
from ordbridge.core.ordinals_indexer import OrdinalsIndexer
from ordbridge.core.ordinals_storage import OrdinalsStorage


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return BridgeConfig(owner=OWNER, operators={OPERATOR})


@pytest.fixture
def storage(clock):
    return OrdinalsStorage(clock=clock)


@pytest.fixture
def indexer(storage):
    return OrdinalsIndexer(storage)


@pytest.fixture
def bridge(config, indexer, clock):
    instance = OrdinalsBridge(config=config, indexer=indexer, clock=clock)
    indexer.bind_verifier(instance.is_transaction_verified)
    return instance


@pytest.fixture
def relay(bridge):
    return ChainRelay(bridge)
