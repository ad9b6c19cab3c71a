"""TopologyProvisioner: creates a project's topics and subscriptions."""

from __future__ import annotations

import asyncio
from enum import StrEnum

import structlog

from pubsubc.backend.base import AlreadyExistsError, PubSubBackend, PubSubConnection
from pubsubc.config.models import SubscriptionSpec, Topology

logger = structlog.get_logger()


class ProvisionErrorKind(StrEnum):
    CONNECTION_FAILED = "connection_failed"
    TOPIC_CREATE_FAILED = "topic_create_failed"
    SUBSCRIPTION_CREATE_FAILED = "subscription_create_failed"
    CANCELLED = "cancelled"


class ProvisionError(Exception):
    """Raised when provisioning a project stops before completing.

    ``topic`` and ``subscription`` identify the resource being created when
    the failure (or cancellation) happened, if any.
    """

    def __init__(
        self,
        kind: ProvisionErrorKind,
        project_id: str,
        *,
        topic: str | None = None,
        subscription: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.kind = kind
        self.project_id = project_id
        self.topic = topic
        self.subscription = subscription
        self.cause = cause
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.kind == ProvisionErrorKind.CONNECTION_FAILED:
            operation, identifier = "create client", "Pub/Sub"
        elif self.kind == ProvisionErrorKind.TOPIC_CREATE_FAILED:
            operation, identifier = "create topic", repr(self.topic)
        elif self.kind == ProvisionErrorKind.SUBSCRIPTION_CREATE_FAILED:
            operation = "create subscription"
            identifier = f"{self.subscription!r} on topic {self.topic!r}"
        else:
            operation = "provisioning cancelled"
            if self.subscription is not None:
                identifier = f"subscription {self.subscription!r}"
            elif self.topic is not None:
                identifier = f"topic {self.topic!r}"
            else:
                identifier = "client"
        reason = str(self.cause) if self.cause is not None and str(self.cause) else self.kind
        return f"{operation} for {identifier} on project {self.project_id!r}: {reason}"


class TopologyProvisioner:
    """Creates every topic and subscription of a topology, stopping at the first failure.

    Pre-existing topics and subscriptions count as success so repeated runs
    are safe.  Nothing is rolled back on failure or cancellation.
    """

    def __init__(self, backend: PubSubBackend) -> None:
        self._backend = backend

    async def provision(self, project_id: str, topology: Topology) -> dict[str, list[str]]:
        """Create the topology and return the IDs of newly created topics and subscriptions.

        Raises ``ProvisionError`` on the first failure.  Cancellation while
        connecting or creating resources raises ``ProvisionError`` with kind
        ``CANCELLED``.  A task cancelled before this coroutine starts running
        never reaches the backend and raises a bare ``asyncio.CancelledError``.
        """
        log = logger.bind(project_id=project_id)
        try:
            connection = await self._backend.connect(project_id)
        except asyncio.CancelledError as exc:
            raise ProvisionError(ProvisionErrorKind.CANCELLED, project_id, cause=exc) from exc
        except Exception as exc:
            log.error("pubsub.connect_failed", error=str(exc))
            raise ProvisionError(
                ProvisionErrorKind.CONNECTION_FAILED, project_id, cause=exc
            ) from exc

        log.debug("pubsub.connected")
        created_topics: list[str] = []
        created_subscriptions: list[str] = []
        try:
            for topic_id, subscriptions in topology.items():
                path = connection.topic_path(topic_id)
                if await self._create_topic(connection, topic_id, path):
                    created_topics.append(topic_id)
                for spec in subscriptions:
                    if await self._create_subscription(connection, topic_id, path, spec):
                        created_subscriptions.append(spec.subscription_id)
        finally:
            await self._close(connection)

        log.info(
            "pubsub.project_provisioned",
            topics_created=len(created_topics),
            subscriptions_created=len(created_subscriptions),
        )
        return {"topics": created_topics, "subscriptions": created_subscriptions}

    async def _create_topic(
        self, connection: PubSubConnection, topic_id: str, path: str
    ) -> bool:
        """Create one topic; False when it already existed."""
        project_id = connection.project_id
        try:
            await connection.create_topic(path)
        except AlreadyExistsError:
            logger.info("pubsub.topic_exists", project_id=project_id, topic=topic_id)
            return False
        except asyncio.CancelledError as exc:
            raise ProvisionError(
                ProvisionErrorKind.CANCELLED, project_id, topic=topic_id, cause=exc
            ) from exc
        except Exception as exc:
            logger.error(
                "pubsub.topic_create_failed",
                project_id=project_id,
                topic=topic_id,
                error=str(exc),
            )
            raise ProvisionError(
                ProvisionErrorKind.TOPIC_CREATE_FAILED,
                project_id,
                topic=topic_id,
                cause=exc,
            ) from exc
        logger.info("pubsub.topic_created", project_id=project_id, topic=topic_id)
        return True

    async def _create_subscription(
        self,
        connection: PubSubConnection,
        topic_id: str,
        path: str,
        spec: SubscriptionSpec,
    ) -> bool:
        """Create one subscription; False when it already existed."""
        project_id = connection.project_id
        sub_id = spec.subscription_id
        try:
            await connection.create_subscription(sub_id, path, spec.push_endpoint)
        except AlreadyExistsError:
            logger.info(
                "pubsub.subscription_exists",
                project_id=project_id,
                topic=topic_id,
                subscription=sub_id,
            )
            return False
        except asyncio.CancelledError as exc:
            raise ProvisionError(
                ProvisionErrorKind.CANCELLED,
                project_id,
                topic=topic_id,
                subscription=sub_id,
                cause=exc,
            ) from exc
        except Exception as exc:
            logger.error(
                "pubsub.subscription_create_failed",
                project_id=project_id,
                topic=topic_id,
                subscription=sub_id,
                error=str(exc),
            )
            raise ProvisionError(
                ProvisionErrorKind.SUBSCRIPTION_CREATE_FAILED,
                project_id,
                topic=topic_id,
                subscription=sub_id,
                cause=exc,
            ) from exc
        logger.info(
            "pubsub.subscription_created",
            project_id=project_id,
            topic=topic_id,
            subscription=sub_id,
            push_endpoint=spec.push_endpoint,
        )
        return True

    async def _close(self, connection: PubSubConnection) -> None:
        try:
            await connection.close()
        except Exception as exc:
            logger.warning(
                "pubsub.client_close_failed",
                project_id=connection.project_id,
                error=str(exc),
            )
