"""Backend protocol: the Pub/Sub capabilities the provisioner relies on."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class AlreadyExistsError(Exception):
    """Raised by a connection when the topic or subscription already exists."""


@runtime_checkable
class PubSubConnection(Protocol):
    """A session bound to one project.  Closed exactly once by its owner."""

    project_id: str

    def topic_path(self, topic_id: str) -> str:
        """Return the backend reference for *topic_id* in this project."""
        ...

    async def create_topic(self, topic_path: str) -> None:
        """Create a topic; raise AlreadyExistsError if it is already there."""
        ...

    async def create_subscription(
        self,
        subscription_id: str,
        topic_path: str,
        push_endpoint: str | None = None,
    ) -> None:
        """Create a pull subscription, or a push subscription when an endpoint is given."""
        ...

    async def close(self) -> None: ...


@runtime_checkable
class PubSubBackend(Protocol):
    """Opens project-scoped connections."""

    async def connect(self, project_id: str) -> PubSubConnection: ...
