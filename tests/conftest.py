from __future__ import annotations
import pytest

from policy_conformance.catalog import load


@pytest.fixture(scope="session")
def catalog():
    return load()
