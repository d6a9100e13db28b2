"""Reconcile declared topics against the broker by creating what is missing."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from topic_reconciler.config.models import TopicDescriptor
from topic_reconciler.streaming.admin import (
    FailureCause,
    TopicAdmin,
    TopicCreationError,
)

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 30.0
CANCELLED_DETAIL = "cancelled before attempt"


class OutcomeStatus(StrEnum):
    ALREADY_EXISTS = "already_exists"
    CREATED = "created"
    FAILED = "failed"


@dataclass(frozen=True)
class TopicOutcome:
    """Result of reconciling one topic."""

    topic: str
    status: OutcomeStatus
    cause: FailureCause | None = None
    detail: str = ""

    @property
    def satisfied(self) -> bool:
        return self.status != OutcomeStatus.FAILED


@dataclass
class ReconciliationReport:
    """Per-topic outcomes of one run, in registry order."""

    outcomes: list[TopicOutcome] = field(default_factory=list)

    @property
    def all_satisfied(self) -> bool:
        return all(o.satisfied for o in self.outcomes)

    @property
    def failures(self) -> list[TopicOutcome]:
        return [o for o in self.outcomes if not o.satisfied]

    @property
    def created(self) -> list[str]:
        return [o.topic for o in self.outcomes if o.status == OutcomeStatus.CREATED]

    @property
    def existing(self) -> list[str]:
        return [
            o.topic for o in self.outcomes if o.status == OutcomeStatus.ALREADY_EXISTS
        ]

    @property
    def transient_only(self) -> bool:
        """True when there are failures and all of them may clear on a re-run."""
        failures = self.failures
        return bool(failures) and all(
            o.cause is not None and o.cause.transient for o in failures
        )

    def outcome_for(self, topic: str) -> TopicOutcome | None:
        for o in self.outcomes:
            if o.topic == topic:
                return o
        return None

    def summary(self) -> dict[str, int]:
        counts = {status.value: 0 for status in OutcomeStatus}
        for o in self.outcomes:
            counts[o.status.value] += 1
        return counts


def reconcile_topic(
    descriptor: TopicDescriptor, admin: TopicAdmin, *, timeout: float
) -> TopicOutcome:
    """Attempt to create one topic and classify what happened."""
    name = descriptor.name
    try:
        admin.create_topic(descriptor, timeout=timeout)
    except TopicCreationError as exc:
        if exc.cause == FailureCause.ALREADY_EXISTS:
            logger.info("topic.already_exists", topic=name)
            return TopicOutcome(name, OutcomeStatus.ALREADY_EXISTS)
        logger.error(
            "topic.create_failed", topic=name, cause=exc.cause.value, error=exc.detail
        )
        return TopicOutcome(name, OutcomeStatus.FAILED, exc.cause, exc.detail)
    except Exception as exc:
        logger.exception("topic.create_failed", topic=name, cause="other")
        return TopicOutcome(name, OutcomeStatus.FAILED, FailureCause.OTHER, str(exc))

    logger.info(
        "topic.created",
        topic=name,
        partitions=descriptor.partitions,
        replication_factor=descriptor.replication_factor,
    )
    return TopicOutcome(name, OutcomeStatus.CREATED)


def reconcile(
    descriptors: Iterable[TopicDescriptor],
    admin: TopicAdmin,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    stop_event: threading.Event | None = None,
) -> ReconciliationReport:
    """Ensure every descriptor's topic exists.

    Topics are handled one at a time in the given order; a failure on one
    never prevents attempts on the rest.  Failures are recorded in the
    report, not raised.  Setting *stop_event* lets the in-flight request
    finish and marks every descriptor not yet attempted as failed.
    """
    report = ReconciliationReport()
    for descriptor in descriptors:
        if stop_event is not None and stop_event.is_set():
            logger.warning("topic.skipped_cancelled", topic=descriptor.name)
            report.outcomes.append(
                TopicOutcome(
                    descriptor.name,
                    OutcomeStatus.FAILED,
                    FailureCause.OTHER,
                    CANCELLED_DETAIL,
                )
            )
            continue
        report.outcomes.append(reconcile_topic(descriptor, admin, timeout=timeout))

    logger.info(
        "reconcile.completed",
        all_satisfied=report.all_satisfied,
        **report.summary(),
    )
    return report
