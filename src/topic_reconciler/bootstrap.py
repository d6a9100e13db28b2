"""Startup hook: gate on deployment profile, reconcile, apply startup policy."""

from __future__ import annotations

import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

import structlog
from tenacity import (
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from topic_reconciler.config.loader import resolve_active_profile
from topic_reconciler.config.models import (
    KafkaConfig,
    PlatformConfig,
    ProvisioningConfig,
)
from topic_reconciler.reconciler import ReconciliationReport, reconcile
from topic_reconciler.registry import TopicRegistry
from topic_reconciler.streaming.admin import TopicAdmin, open_admin

logger = structlog.get_logger()

AdminFactory = Callable[..., AbstractContextManager[TopicAdmin]]


class ProvisioningError(Exception):
    """Raised at startup when declared topics could not all be provisioned."""

    def __init__(self, report: ReconciliationReport) -> None:
        self.report = report
        failed = ", ".join(
            f"{o.topic} ({o.cause.value if o.cause else 'unknown'})"
            for o in report.failures
        )
        msg = f"Failed to provision {len(report.failures)} topic(s): {failed}"
        super().__init__(msg)


def provisioning_enabled(profile: str, config: ProvisioningConfig) -> bool:
    """Return True when topics should be provisioned under *profile*."""
    return config.enabled and profile in config.profiles


def _run_once(
    registry: TopicRegistry,
    kafka: KafkaConfig,
    provisioning: ProvisioningConfig,
    admin_factory: AdminFactory,
    stop_event: threading.Event | None,
) -> ReconciliationReport:
    verify = provisioning.verify_partitions
    with admin_factory(kafka, verify_partitions=verify) as admin:
        return reconcile(
            registry.descriptors(),
            admin,
            timeout=kafka.operation_timeout_seconds,
            stop_event=stop_event,
        )


def _should_rerun(stop_event: threading.Event | None) -> Callable[[Any], bool]:
    def _check(report: ReconciliationReport) -> bool:
        if stop_event is not None and stop_event.is_set():
            return False
        return report.transient_only

    return _check


def run_reconciliation(
    platform: PlatformConfig,
    *,
    admin_factory: AdminFactory = open_admin,
    stop_event: threading.Event | None = None,
) -> ReconciliationReport:
    """Reconcile all configured topics, re-running on transient-only failures.

    Each attempt opens (and closes) its own admin client.
    """
    provisioning = platform.provisioning
    registry = TopicRegistry.from_config(provisioning)
    retry_cfg = provisioning.retry

    retrying = Retrying(
        retry=retry_if_result(_should_rerun(stop_event)),
        stop=stop_after_attempt(retry_cfg.max_attempts),
        wait=wait_exponential(
            multiplier=retry_cfg.initial_wait_seconds,
            exp_base=retry_cfg.multiplier,
            max=retry_cfg.max_wait_seconds,
        ),
        before_sleep=lambda state: logger.warning(
            "provisioning.retrying", attempt=state.attempt_number
        ),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    report: ReconciliationReport = retrying(
        _run_once,
        registry,
        platform.kafka,
        provisioning,
        admin_factory,
        stop_event,
    )
    return report


def provision_topics(
    platform: PlatformConfig,
    *,
    profile: str | None = None,
    admin_factory: AdminFactory = open_admin,
    stop_event: threading.Event | None = None,
    fail_on_unsatisfied: bool | None = None,
) -> ReconciliationReport | None:
    """Provision declared topics if the active profile allows it.

    Returns ``None`` when provisioning is skipped.  When topics are left
    unsatisfied, raises :class:`ProvisioningError` if the startup policy is
    strict, otherwise logs a warning and returns the report.
    """
    active = profile or resolve_active_profile(platform)
    provisioning = platform.provisioning
    if not provisioning_enabled(active, provisioning):
        logger.info(
            "provisioning.skipped",
            profile=active,
            enabled=provisioning.enabled,
            profiles=provisioning.profiles,
        )
        return None

    logger.info(
        "provisioning.started",
        profile=active,
        topics=[t.name for t in provisioning.topics],
    )
    report = run_reconciliation(
        platform, admin_factory=admin_factory, stop_event=stop_event
    )

    strict = (
        provisioning.fail_on_unsatisfied
        if fail_on_unsatisfied is None
        else fail_on_unsatisfied
    )
    if not report.all_satisfied:
        if strict:
            raise ProvisioningError(report)
        logger.warning(
            "provisioning.degraded",
            failed=[o.topic for o in report.failures],
        )
    return report
