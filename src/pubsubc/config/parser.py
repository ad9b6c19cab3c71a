"""Parser for the compact topology string.

Format::

    project,topic1,topic2>sub1,topic3>sub2@http://host:8080/push>sub3

The first comma-separated element is the project ID.  Each following element
declares a topic; ``>`` introduces each of its subscriptions in order, and an
optional ``@endpoint`` turns a subscription into a push subscription.
"""

from __future__ import annotations

from pubsubc.config.models import (
    ProjectConfig,
    SubscriptionSpec,
    is_absolute_url,
)

TOPIC_SEPARATOR = ","
SUBSCRIPTION_SEPARATOR = ">"
ENDPOINT_SEPARATOR = "@"


class ParseError(ValueError):
    """Raised when a topology string is malformed."""

    def __init__(self, message: str, *, fragment: str, position: int) -> None:
        super().__init__(f"{message} (fragment {fragment!r} at offset {position})")
        self.fragment = fragment
        self.position = position


def _split(text: str, sep: str, start: int) -> list[tuple[str, int]]:
    """Split *text* on *sep*, pairing each piece with its offset in the raw string."""
    pieces: list[tuple[str, int]] = []
    offset = start
    for piece in text.split(sep):
        pieces.append((piece, offset))
        offset += len(piece) + len(sep)
    return pieces


def _strip(piece: str, offset: int) -> tuple[str, int]:
    stripped = piece.lstrip()
    return stripped.rstrip(), offset + len(piece) - len(stripped)


def _parse_subscription(decl: str, position: int) -> SubscriptionSpec:
    raw_id, _, raw_endpoint = decl.partition(ENDPOINT_SEPARATOR)
    subscription_id, _ = _strip(raw_id, position)
    if not subscription_id:
        raise ParseError(
            "Subscription declaration has an empty ID", fragment=decl, position=position
        )
    endpoint, endpoint_pos = _strip(raw_endpoint, position + len(raw_id) + 1)
    if endpoint and not is_absolute_url(endpoint):
        raise ParseError(
            f"Push endpoint for subscription '{subscription_id}' is not an absolute URL",
            fragment=endpoint,
            position=endpoint_pos,
        )
    return SubscriptionSpec(subscription_id=subscription_id, push_endpoint=endpoint or None)


def _parse_topic(
    decl: str, position: int, seen_subscriptions: dict[str, str]
) -> tuple[str, tuple[SubscriptionSpec, ...]]:
    fragments = _split(decl, SUBSCRIPTION_SEPARATOR, position)
    topic, _ = _strip(*fragments[0])
    if not topic:
        raise ParseError(
            "Topic declaration has an empty name", fragment=decl, position=position
        )

    sub_fragments = fragments[1:]
    # "topic>" declares a topic without subscriptions
    if len(sub_fragments) == 1 and not sub_fragments[0][0].strip():
        sub_fragments = []

    subscriptions: list[SubscriptionSpec] = []
    for fragment, fragment_pos in sub_fragments:
        spec = _parse_subscription(fragment, fragment_pos)
        owner = seen_subscriptions.get(spec.subscription_id)
        if owner is not None:
            raise ParseError(
                f"Subscription '{spec.subscription_id}' is already declared on topic '{owner}'",
                fragment=fragment,
                position=fragment_pos,
            )
        seen_subscriptions[spec.subscription_id] = topic
        subscriptions.append(spec)
    return topic, tuple(subscriptions)


def parse(raw: str) -> ProjectConfig:
    """Parse one topology string into a ProjectConfig.

    Raises ParseError describing the offending fragment and its offset.
    Duplicate topic names and duplicate subscription IDs are rejected rather
    than merged.
    """
    if not raw or not raw.strip():
        raise ParseError("Configuration string is empty", fragment=raw, position=0)

    elements = _split(raw, TOPIC_SEPARATOR, 0)
    project_id, project_pos = _strip(*elements[0])
    if not project_id:
        raise ParseError("Missing project ID", fragment=elements[0][0], position=0)
    if SUBSCRIPTION_SEPARATOR in project_id:
        raise ParseError(
            f"Project ID must not contain '{SUBSCRIPTION_SEPARATOR}'",
            fragment=project_id,
            position=project_pos,
        )
    if len(elements) < 2:
        raise ParseError(
            "Expected at least 1 topic to be declared", fragment=raw, position=len(raw)
        )

    topics: dict[str, tuple[SubscriptionSpec, ...]] = {}
    seen_subscriptions: dict[str, str] = {}
    for decl, position in elements[1:]:
        topic, subscriptions = _parse_topic(decl, position, seen_subscriptions)
        if topic in topics:
            raise ParseError(
                f"Topic '{topic}' is declared more than once", fragment=decl, position=position
            )
        topics[topic] = subscriptions

    return ProjectConfig(project_id=project_id, topics=topics)
