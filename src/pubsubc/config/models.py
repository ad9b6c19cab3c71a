"""Pydantic models for project topology and provisioning settings."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def is_absolute_url(value: str) -> bool:
    """Return True when *value* has both a scheme and a network location."""
    try:
        parts = urlsplit(value)
    except ValueError:
        # e.g. an unclosed IPv6 bracket in the host
        return False
    return bool(parts.scheme) and bool(parts.netloc)


class SubscriptionSpec(BaseModel):
    """A subscription bound to a topic; push delivery when an endpoint is set."""

    model_config = ConfigDict(frozen=True)

    subscription_id: str = Field(min_length=1)
    push_endpoint: str | None = None

    @field_validator("push_endpoint", mode="before")
    @classmethod
    def validate_push_endpoint(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        if not is_absolute_url(v):
            msg = f"Push endpoint '{v}' must be an absolute URL (e.g. 'http://host:8080/push')"
            raise ValueError(msg)
        return v

    @property
    def is_push(self) -> bool:
        return self.push_endpoint is not None


# Read-only once validated; topics iterate in declaration order.
Topology = Mapping[str, tuple[SubscriptionSpec, ...]]


class ProjectConfig(BaseModel):
    """Topics and subscriptions to provision for one project."""

    model_config = ConfigDict(frozen=True)

    project_id: str = Field(min_length=1)
    topics: Topology

    @field_validator("project_id")
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        if "," in v or ">" in v:
            msg = f"Project ID '{v}' must not contain ',' or '>'"
            raise ValueError(msg)
        return v

    @field_validator("topics")
    @classmethod
    def validate_topics(cls, v: Topology) -> Topology:
        if not v:
            msg = "At least one topic must be declared"
            raise ValueError(msg)
        for topic in v:
            if not topic:
                msg = "Topic names must not be empty"
                raise ValueError(msg)
        return MappingProxyType(dict(v))

    @field_serializer("topics")
    def serialize_topics(self, v: Topology) -> dict[str, tuple[SubscriptionSpec, ...]]:
        return dict(v)

    @property
    def subscription_count(self) -> int:
        return sum(len(subs) for subs in self.topics.values())


class ProvisionSettings(BaseModel):
    """Runtime settings for discovery and the Pub/Sub backend."""

    env_prefix: str = Field(default="PUBSUB_PROJECT", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    # Exported as PUBSUB_EMULATOR_HOST before clients are built.
    emulator_host: str | None = None
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    ack_deadline_seconds: int = Field(default=10, ge=10, le=600)

    @field_validator("emulator_host", mode="before")
    @classmethod
    def empty_host_is_unset(cls, v: str | None) -> str | None:
        return v or None
