"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from aicore.page.agent import PageAgent
from aicore.page.document import PageDocument
from aicore.services.bridge_router import HostRouter
from aicore.services.transport import InMemoryContextHost
from tests.helpers import BASE_URL, LOGIN_PAGE, make_host, make_loader


@pytest.fixture
def document() -> PageDocument:
    return PageDocument(LOGIN_PAGE, url=BASE_URL, loader=make_loader())


@pytest.fixture
def agent(document: PageDocument) -> PageAgent:
    return PageAgent(document, poll_interval=0.005)


@pytest.fixture
def host() -> InMemoryContextHost:
    return make_host()


@pytest.fixture
def router(host: InMemoryContextHost) -> HostRouter:
    return HostRouter(host, default_timeout=2.0)
