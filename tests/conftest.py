from __future__ import annotations

import logging
import pathlib
import sys
from collections.abc import Iterator

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from apps.provider_server.dispatch import ProviderDispatcher  # noqa: E402
from apps.provider_server.logging import LOGGER_NAME  # noqa: E402
from apps.provider_server.testing import ProviderTester  # noqa: E402
from tests.helpers.example_provider import ExampleProvider  # noqa: E402


@pytest.fixture(scope="session")
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def provider() -> ExampleProvider:
    return ExampleProvider()


@pytest.fixture
def dispatcher(provider: ExampleProvider) -> ProviderDispatcher:
    return ProviderDispatcher(provider)


@pytest.fixture
def tester(provider: ExampleProvider) -> ProviderTester:
    return ProviderTester(provider)


@pytest.fixture(autouse=True)
def _reset_sdk_logger() -> Iterator[None]:
    """Undo ``configure_logging`` so caplog sees SDK records in every test."""

    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_hemmer_sdk", False):
            logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
