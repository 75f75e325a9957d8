"""
Unit test specific fixtures.

Unit tests run against in-memory collaborators only; nothing here talks to a
cluster or the network.
"""

from unittest.mock import MagicMock

import pytest
from kubernetes import client


@pytest.fixture
def core_api():
    """A CoreV1Api double with auto-specced methods."""
    return MagicMock(spec=client.CoreV1Api)
