"""Unit tests for the reconciliation loop."""

from __future__ import annotations

import threading

import pytest
from pydantic import ValidationError

from topic_reconciler.config.models import TopicDescriptor
from topic_reconciler.reconciler import (
    CANCELLED_DETAIL,
    OutcomeStatus,
    ReconciliationReport,
    TopicOutcome,
    reconcile,
)
from topic_reconciler.streaming.admin import FailureCause, TopicCreationError

LIBRARY_EVENTS = TopicDescriptor(name="library-events", partitions=3, replicas=3)


class TestScenarios:
    def test_created_then_already_exists(self, broker):
        first = reconcile([LIBRARY_EVENTS], broker.session())
        assert first.outcome_for("library-events").status == OutcomeStatus.CREATED
        assert first.all_satisfied

        second = reconcile([LIBRARY_EVENTS], broker.session())
        assert (
            second.outcome_for("library-events").status
            == OutcomeStatus.ALREADY_EXISTS
        )
        assert second.all_satisfied

    def test_insufficient_nodes_on_single_broker(self, broker):
        broker.nodes = 1
        report = reconcile([LIBRARY_EVENTS], broker.session())

        outcome = report.outcome_for("library-events")
        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.cause == FailureCause.INSUFFICIENT_NODES
        assert not report.all_satisfied
        assert "library-events" not in broker.topics

    def test_unreachable_broker_reports_every_topic(self, broker):
        broker.reachable = False
        descriptors = [
            TopicDescriptor(name="orders"),
            TopicDescriptor(name="payments"),
        ]
        report = reconcile(descriptors, broker.session())

        assert [o.topic for o in report.outcomes] == ["orders", "payments"]
        assert all(o.cause == FailureCause.UNREACHABLE for o in report.outcomes)
        assert not report.all_satisfied


class TestIdempotence:
    def test_second_run_sees_everything_as_existing(self, broker):
        broker.topics["preexisting"] = TopicDescriptor(name="preexisting")
        descriptors = [
            TopicDescriptor(name="preexisting"),
            TopicDescriptor(name="fresh-a", partitions=2),
            TopicDescriptor(name="fresh-b", replication_factor=2),
        ]

        first = reconcile(descriptors, broker.session())
        assert first.created == ["fresh-a", "fresh-b"]
        assert first.existing == ["preexisting"]

        second = reconcile(descriptors, broker.session())
        assert second.existing == ["preexisting", "fresh-a", "fresh-b"]
        assert second.created == []
        assert second.all_satisfied


class TestIndependence:
    @pytest.mark.parametrize("position", [0, 1, 2])
    def test_failing_topic_does_not_affect_others(self, broker, position):
        broker.nodes = 1
        good = [TopicDescriptor(name="a"), TopicDescriptor(name="b")]
        bad = TopicDescriptor(name="too-replicated", replication_factor=3)
        descriptors = list(good)
        descriptors.insert(position, bad)

        report = reconcile(descriptors, broker.session())

        assert [o.topic for o in report.outcomes] == [d.name for d in descriptors]
        assert report.outcome_for("a").status == OutcomeStatus.CREATED
        assert report.outcome_for("b").status == OutcomeStatus.CREATED
        assert report.outcome_for("too-replicated").cause == (
            FailureCause.INSUFFICIENT_NODES
        )
        assert broker.create_calls == [d.name for d in descriptors]

    def test_unexpected_exception_is_captured_as_other(self, broker):
        broker.forced_errors["boom"] = RuntimeError("socket exploded")
        descriptors = [TopicDescriptor(name="boom"), TopicDescriptor(name="fine")]

        report = reconcile(descriptors, broker.session())

        boom = report.outcome_for("boom")
        assert boom.status == OutcomeStatus.FAILED
        assert boom.cause == FailureCause.OTHER
        assert boom.detail == "socket exploded"
        assert report.outcome_for("fine").status == OutcomeStatus.CREATED

    def test_other_failure_keeps_raw_detail(self, broker):
        broker.forced_errors["odd"] = TopicCreationError(
            FailureCause.OTHER, "INVALID_CONFIG: retention.ms must be >= -1"
        )
        report = reconcile([TopicDescriptor(name="odd")], broker.session())

        outcome = report.outcome_for("odd")
        assert outcome.cause == FailureCause.OTHER
        assert "retention.ms" in outcome.detail


class TestReconcileBehaviour:
    def test_empty_descriptor_set_is_satisfied(self, broker):
        report = reconcile([], broker.session())
        assert report.outcomes == []
        assert report.all_satisfied

    def test_timeout_is_passed_to_admin(self, broker):
        admin = broker.session()
        reconcile([TopicDescriptor(name="t")], admin, timeout=5.0)
        assert admin.timeouts == [5.0]

    def test_stop_event_skips_remaining_descriptors(self, broker):
        stop = threading.Event()
        stop.set()
        descriptors = [TopicDescriptor(name="x"), TopicDescriptor(name="y")]

        report = reconcile(descriptors, broker.session(), stop_event=stop)

        assert broker.create_calls == []
        assert len(report.outcomes) == 2
        assert all(o.detail == CANCELLED_DETAIL for o in report.outcomes)
        assert not report.all_satisfied

    def test_stop_during_run_lets_inflight_request_finish(self, broker):
        stop = threading.Event()
        session = broker.session()
        original = session.create_topic

        def create_then_stop(descriptor, *, timeout):
            original(descriptor, timeout=timeout)
            stop.set()

        session.create_topic = create_then_stop
        descriptors = [TopicDescriptor(name="first"), TopicDescriptor(name="second")]

        report = reconcile(descriptors, session, stop_event=stop)

        assert report.outcome_for("first").status == OutcomeStatus.CREATED
        assert report.outcome_for("second").detail == CANCELLED_DETAIL
        assert "second" not in broker.topics


class TestInvariants:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "t", "partitions": 0},
            {"name": "t", "replication_factor": 0},
            {"name": "t", "replicas": 0},
            {"name": ""},
        ],
    )
    def test_invalid_descriptor_rejected_before_broker(self, broker, kwargs):
        with pytest.raises(ValidationError):
            reconcile([TopicDescriptor(**kwargs)], broker.session())
        assert broker.create_calls == []


class TestReport:
    def _report(self) -> ReconciliationReport:
        return ReconciliationReport(
            outcomes=[
                TopicOutcome("a", OutcomeStatus.CREATED),
                TopicOutcome("b", OutcomeStatus.ALREADY_EXISTS),
                TopicOutcome("c", OutcomeStatus.FAILED, FailureCause.TIMEOUT, "slow"),
            ]
        )

    def test_summary_counts(self):
        assert self._report().summary() == {
            "already_exists": 1,
            "created": 1,
            "failed": 1,
        }

    def test_failures_and_transient(self):
        report = self._report()
        assert [o.topic for o in report.failures] == ["c"]
        assert report.transient_only

    def test_non_transient_failure(self):
        report = ReconciliationReport(
            outcomes=[
                TopicOutcome("a", OutcomeStatus.FAILED, FailureCause.TIMEOUT),
                TopicOutcome("b", OutcomeStatus.FAILED, FailureCause.UNAUTHORIZED),
            ]
        )
        assert not report.transient_only

    def test_all_satisfied_report_is_not_transient(self):
        report = ReconciliationReport(
            outcomes=[TopicOutcome("a", OutcomeStatus.CREATED)]
        )
        assert report.all_satisfied
        assert not report.transient_only

    def test_outcome_for_unknown_topic(self):
        assert self._report().outcome_for("zzz") is None
