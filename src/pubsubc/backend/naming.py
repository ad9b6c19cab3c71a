"""Pub/Sub resource path conventions."""

from __future__ import annotations


def topic_path(project_id: str, topic_id: str) -> str:
    """Build a fully-qualified Pub/Sub topic name."""
    return f"projects/{project_id}/topics/{topic_id}"


def subscription_path(project_id: str, subscription_id: str) -> str:
    """Build a fully-qualified Pub/Sub subscription name."""
    return f"projects/{project_id}/subscriptions/{subscription_id}"
