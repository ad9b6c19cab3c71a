"""Parse and provision every supplied project configuration in turn."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from pubsubc.config.parser import ParseError, parse
from pubsubc.provisioner import ProvisionError, ProvisionErrorKind, TopologyProvisioner

logger = structlog.get_logger()


@dataclass
class ProjectOutcome:
    source: str
    project_id: str | None = None
    error: str = ""
    created: dict[str, list[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.error


@dataclass
class RunReport:
    outcomes: list[ProjectOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.cancelled and all(o.ok for o in self.outcomes)

    @property
    def failures(self) -> list[ProjectOutcome]:
        return [o for o in self.outcomes if not o.ok]


async def provision_all(
    configs: Sequence[tuple[str, str]],
    provisioner: TopologyProvisioner,
) -> RunReport:
    """Provision each ``(source, raw)`` configuration sequentially.

    A failing project does not stop the others; cancellation stops the run.
    """
    report = RunReport()
    for source, raw in configs:
        outcome = ProjectOutcome(source=source)
        report.outcomes.append(outcome)

        try:
            project = parse(raw)
        except ParseError as exc:
            logger.error("config.parse_failed", source=source, error=str(exc))
            outcome.error = f"invalid configuration: {exc}"
            continue

        outcome.project_id = project.project_id
        logger.info(
            "config.project_loaded",
            source=source,
            project_id=project.project_id,
            topics=len(project.topics),
            subscriptions=project.subscription_count,
        )
        try:
            outcome.created = await provisioner.provision(project.project_id, project.topics)
        except ProvisionError as exc:
            outcome.error = str(exc)
            if exc.kind == ProvisionErrorKind.CANCELLED:
                logger.warning("pubsub.run_cancelled", source=source)
                report.cancelled = True
                break

    return report
