"""Google Cloud Pub/Sub backend built on ``google.cloud.pubsub_v1``."""

from __future__ import annotations

import asyncio
import functools
import os
from collections.abc import Callable
from typing import Any

import structlog

from pubsubc.backend.base import AlreadyExistsError
from pubsubc.backend.naming import subscription_path, topic_path
from pubsubc.config.models import ProvisionSettings

logger = structlog.get_logger()


class GooglePubSubConnection:
    """Publisher + subscriber client pair scoped to one project.

    The GCP clients are blocking, so every request runs in the default
    executor.  Cancelling the awaiting task abandons the wait but does not
    undo a request the service already accepted.
    """

    def __init__(
        self,
        project_id: str,
        publisher: Any,
        subscriber: Any,
        settings: ProvisionSettings,
    ) -> None:
        self.project_id = project_id
        self._publisher = publisher
        self._subscriber = subscriber
        self._settings = settings

    def topic_path(self, topic_id: str) -> str:
        return topic_path(self.project_id, topic_id)

    async def create_topic(self, topic_path: str) -> None:
        await self._call(self._publisher.create_topic, request={"name": topic_path})

    async def create_subscription(
        self,
        subscription_id: str,
        topic_path: str,
        push_endpoint: str | None = None,
    ) -> None:
        request: dict[str, Any] = {
            "name": subscription_path(self.project_id, subscription_id),
            "topic": topic_path,
            "ack_deadline_seconds": self._settings.ack_deadline_seconds,
        }
        if push_endpoint is not None:
            request["push_config"] = {"push_endpoint": push_endpoint}
        await self._call(self._subscriber.create_subscription, request=request)

    async def _call(self, method: Callable[..., Any], **kwargs: Any) -> Any:
        from google.api_core.exceptions import AlreadyExists

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                functools.partial(
                    method, timeout=self._settings.request_timeout_seconds, **kwargs
                ),
            )
        except AlreadyExists as exc:
            raise AlreadyExistsError(str(exc)) from exc

    async def close(self) -> None:
        self._subscriber.close()
        self._publisher.stop()
        logger.debug("pubsub.client_closed", project_id=self.project_id)


class GooglePubSubBackend:
    """Creates GooglePubSubConnection instances, honouring an emulator host."""

    def __init__(self, settings: ProvisionSettings | None = None) -> None:
        self._settings = settings or ProvisionSettings()

    async def connect(self, project_id: str) -> GooglePubSubConnection:
        from google.cloud import pubsub_v1

        if self._settings.emulator_host:
            # The client library switches to an insecure emulator channel on this variable.
            os.environ["PUBSUB_EMULATOR_HOST"] = self._settings.emulator_host

        publisher = pubsub_v1.PublisherClient()
        try:
            subscriber = pubsub_v1.SubscriberClient()
        except Exception:
            publisher.stop()
            raise

        logger.debug(
            "pubsub.client_connected",
            project_id=project_id,
            emulator_host=self._settings.emulator_host,
        )
        return GooglePubSubConnection(project_id, publisher, subscriber, self._settings)
