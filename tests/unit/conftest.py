"""In-memory Pub/Sub backend shared by the unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
import structlog

from pubsubc.backend.base import AlreadyExistsError
from pubsubc.backend.naming import topic_path


def _resource_id(path: str) -> str:
    # projects/{project}/topics/{name}
    return path.rsplit("/", 1)[-1]


class FakeConnection:
    """Records every call in order; failures and blocking are configured per resource."""

    def __init__(self, project_id: str, backend: FakeBackend) -> None:
        self.project_id = project_id
        self._backend = backend
        self.calls: list[tuple[str, ...]] = []
        self.close_count = 0

    def topic_path(self, topic_id: str) -> str:
        return topic_path(self.project_id, topic_id)

    async def create_topic(self, topic_path: str) -> None:
        self.calls.append(("create_topic", topic_path))
        topic_id = _resource_id(topic_path)
        await self._maybe_block(topic_id)
        if topic_id in self._backend.topic_errors:
            raise self._backend.topic_errors[topic_id]
        if topic_id in self._backend.existing_topics:
            raise AlreadyExistsError(f"Topic already exists: {topic_path}")

    async def create_subscription(
        self,
        subscription_id: str,
        topic_path: str,
        push_endpoint: str | None = None,
    ) -> None:
        self.calls.append(("create_subscription", subscription_id, topic_path, push_endpoint))
        await self._maybe_block(subscription_id)
        if subscription_id in self._backend.subscription_errors:
            raise self._backend.subscription_errors[subscription_id]
        if subscription_id in self._backend.existing_subscriptions:
            raise AlreadyExistsError(f"Subscription already exists: {subscription_id}")

    async def close(self) -> None:
        self.close_count += 1
        if self._backend.close_error is not None:
            raise self._backend.close_error

    async def _maybe_block(self, resource_id: str) -> None:
        if resource_id in self._backend.block_on:
            self._backend.call_started.set()
            await asyncio.Event().wait()


class FakeBackend:
    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []
        self.connect_errors: dict[str, Exception] = {}
        self.existing_topics: set[str] = set()
        self.existing_subscriptions: set[str] = set()
        self.topic_errors: dict[str, Exception] = {}
        self.subscription_errors: dict[str, Exception] = {}
        self.close_error: Exception | None = None
        # Calls for these topic or subscription IDs hang until cancelled.
        self.block_on: set[str] = set()
        self.call_started = asyncio.Event()

    async def connect(self, project_id: str) -> FakeConnection:
        if project_id in self.connect_errors:
            raise self.connect_errors[project_id]
        connection = FakeConnection(project_id, self)
        self.connections.append(connection)
        return connection

    @property
    def connection(self) -> FakeConnection:
        assert len(self.connections) == 1
        return self.connections[0]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()
