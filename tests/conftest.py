"""Shared fixtures for opswatch tests."""

import pytest

from fakes import FakeGateway
from opswatch.storage import Stores


@pytest.fixture
def stores(tmp_path) -> Stores:
    return Stores(tmp_path)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
