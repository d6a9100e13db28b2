"""Shared fixtures: an in-memory broker speaking the TopicAdmin contract."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from topic_reconciler.config.models import KafkaConfig, TopicDescriptor
from topic_reconciler.streaming.admin import FailureCause, TopicCreationError


class FakeBroker:
    """Cluster state shared by every admin session opened against it."""

    def __init__(self, nodes: int = 3, *, reachable: bool = True) -> None:
        self.nodes = nodes
        self.reachable = reachable
        self.authorized = True
        self.topics: dict[str, TopicDescriptor] = {}
        self.create_calls: list[str] = []
        self.sessions: list[FakeAdmin] = []
        # topic name -> error raised instead of creating it
        self.forced_errors: dict[str, TopicCreationError | Exception] = {}

    def session(self) -> FakeAdmin:
        admin = FakeAdmin(self)
        self.sessions.append(admin)
        return admin


class FakeAdmin:
    def __init__(self, broker: FakeBroker) -> None:
        self.broker = broker
        self.closed = False
        self.timeouts: list[float] = []

    def create_topic(self, descriptor: TopicDescriptor, *, timeout: float) -> None:
        assert not self.closed, "admin used after close"
        b = self.broker
        b.create_calls.append(descriptor.name)
        self.timeouts.append(timeout)
        if descriptor.name in b.forced_errors:
            raise b.forced_errors[descriptor.name]
        if not b.reachable:
            raise TopicCreationError(FailureCause.UNREACHABLE, "connection refused")
        if not b.authorized:
            raise TopicCreationError(FailureCause.UNAUTHORIZED, "not authorized")
        if descriptor.name in b.topics:
            raise TopicCreationError(FailureCause.ALREADY_EXISTS, "exists")
        if descriptor.replication_factor > b.nodes:
            raise TopicCreationError(
                FailureCause.INSUFFICIENT_NODES,
                f"replication factor {descriptor.replication_factor} "
                f"larger than available brokers {b.nodes}",
            )
        b.topics[descriptor.name] = descriptor

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker(nodes=3)


@pytest.fixture
def admin_factory(broker: FakeBroker):
    """Drop-in replacement for ``open_admin`` bound to the ``broker`` fixture."""

    @contextmanager
    def _factory(
        config: KafkaConfig, *, verify_partitions: bool = True
    ) -> Iterator[FakeAdmin]:
        admin = broker.session()
        try:
            yield admin
        finally:
            admin.close()

    return _factory
