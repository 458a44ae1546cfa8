"""Shared fixtures for the promise_police test suite."""

import asyncio
from types import SimpleNamespace
from typing import List

import pytest
from loguru import logger

from promise_police.config.settings import resolve_config
from promise_police.system.errors import UNHANDLED_MESSAGE
from promise_police.system.promise import Promise
from promise_police.system.supervisor import FutureSupervisor


TIMEOUT = 0.05


async def wait_past_deadline(timeout: float = TIMEOUT):
    """Sleep long enough for every deadline armed so far to fire."""
    await asyncio.sleep(timeout * 4)


def unhandled_warnings(records: List[dict]) -> List[dict]:
    return [
        record for record in records
        if record["level"].name == "WARNING" and UNHANDLED_MESSAGE in record["message"]
    ]


@pytest.fixture
def log_messages():
    """Collect loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def reports():
    """Diagnostics handed to a supervisor's reporter."""
    return []


@pytest.fixture
def make_supervisor(reports):
    """Build a FutureSupervisor with a short timeout that records its diagnostics."""

    def factory(**overrides):
        overrides.setdefault("timeout", TIMEOUT)
        return FutureSupervisor(resolve_config(**overrides), reporter=reports.append)

    return factory


@pytest.fixture
def host():
    """An object holding a promise constructor, standing in for a host module."""
    return SimpleNamespace(Promise=Promise)
