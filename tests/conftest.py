from __future__ import annotations

import pytest

from bleadapter.core.config import AdapterConfig
from bleadapter.dbuslayer.manager import ObjectCache

from fakes import FILTER_UUID, FakeBroker, FakeTransport


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def cache(transport: FakeTransport) -> ObjectCache:
    return ObjectCache.open(transport=transport)


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def window() -> AdapterConfig:
    return AdapterConfig(filters=(FILTER_UUID,))
