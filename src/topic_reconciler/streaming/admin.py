"""Kafka admin capability used by the reconciler.

The reconciler only needs one operation, "create this topic", and a small,
closed vocabulary of ways it can fail.  :class:`KafkaTopicAdmin` maps
confluent-kafka's admin futures and error codes onto that vocabulary.
"""

from __future__ import annotations

import concurrent.futures
import time
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

import structlog
from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic  # type: ignore[attr-defined]

from topic_reconciler.config.models import KafkaConfig, TopicDescriptor
from topic_reconciler.streaming.auth import build_admin_config

logger = structlog.get_logger()


class FailureCause(StrEnum):
    """Why a create-topic request did not produce a new topic."""

    ALREADY_EXISTS = "already_exists"
    INSUFFICIENT_NODES = "insufficient_nodes"
    UNAUTHORIZED = "unauthorized"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    OTHER = "other"

    @property
    def transient(self) -> bool:
        return self in (FailureCause.TIMEOUT, FailureCause.UNREACHABLE)


class TopicCreationError(Exception):
    """Raised by a :class:`TopicAdmin` when a create request is not accepted."""

    def __init__(self, cause: FailureCause, detail: str = "") -> None:
        self.cause = cause
        self.detail = detail
        super().__init__(f"{cause.value}: {detail}" if detail else cause.value)


@runtime_checkable
class TopicAdmin(Protocol):
    """Narrow admin surface: create one topic, then release the connection."""

    def create_topic(self, descriptor: TopicDescriptor, *, timeout: float) -> None:
        """Create the topic or raise :class:`TopicCreationError`."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...


_ERROR_CAUSES: dict[int, FailureCause] = {
    KafkaError.TOPIC_ALREADY_EXISTS: FailureCause.ALREADY_EXISTS,
    KafkaError.INVALID_REPLICATION_FACTOR: FailureCause.INSUFFICIENT_NODES,
    KafkaError.TOPIC_AUTHORIZATION_FAILED: FailureCause.UNAUTHORIZED,
    KafkaError.CLUSTER_AUTHORIZATION_FAILED: FailureCause.UNAUTHORIZED,
    KafkaError.SASL_AUTHENTICATION_FAILED: FailureCause.UNAUTHORIZED,
    KafkaError._AUTHENTICATION: FailureCause.UNAUTHORIZED,
    KafkaError._TIMED_OUT: FailureCause.TIMEOUT,
    KafkaError.REQUEST_TIMED_OUT: FailureCause.TIMEOUT,
    KafkaError._TRANSPORT: FailureCause.UNREACHABLE,
    KafkaError._ALL_BROKERS_DOWN: FailureCause.UNREACHABLE,
    KafkaError._RESOLVE: FailureCause.UNREACHABLE,
    KafkaError.BROKER_NOT_AVAILABLE: FailureCause.UNREACHABLE,
    KafkaError.NETWORK_EXCEPTION: FailureCause.UNREACHABLE,
}


def classify_kafka_error(error: KafkaError) -> FailureCause:
    """Map a confluent-kafka error code onto a :class:`FailureCause`."""
    return _ERROR_CAUSES.get(error.code(), FailureCause.OTHER)


def _error_from_exception(exc: KafkaException) -> TopicCreationError:
    err = exc.args[0] if exc.args else None
    if isinstance(err, KafkaError):
        return TopicCreationError(classify_kafka_error(err), err.str())
    return TopicCreationError(FailureCause.OTHER, str(exc))


class KafkaTopicAdmin:
    """confluent-kafka backed :class:`TopicAdmin`.

    Call :meth:`connect` before creating topics.  If the cluster cannot be
    reached at that point, every later :meth:`create_topic` fails fast with
    the probe's cause instead of waiting out a timeout per topic.
    """

    def __init__(
        self,
        config: KafkaConfig,
        *,
        verify_partitions: bool = True,
        admin_client: Any | None = None,
    ) -> None:
        self._config = config
        self._verify_partitions = verify_partitions
        self._closed = False
        self._probe_error: TopicCreationError | None = None
        self.broker_count: int | None = None
        self._admin: Any | None = admin_client
        if admin_client is None:
            try:
                self._admin = AdminClient(build_admin_config(config))
            except KafkaException as exc:
                # e.g. an unreadable ssl.ca.location; no broker is ever contacted.
                self._probe_error = _error_from_exception(exc)
                logger.error(
                    "kafka_admin.client_init_failed",
                    bootstrap_servers=config.bootstrap_servers,
                    cause=self._probe_error.cause.value,
                    error=self._probe_error.detail,
                )

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self) -> None:
        """Probe cluster metadata once and remember whether it is reachable."""
        if self._probe_error is not None and self._admin is None:
            return
        admin = self._require_admin()
        try:
            meta = admin.list_topics(timeout=self._config.request_timeout_seconds)
        except KafkaException as exc:
            error = _error_from_exception(exc)
            # Anything short of an explicit auth rejection means we never got
            # a usable connection.
            if error.cause != FailureCause.UNAUTHORIZED:
                error = TopicCreationError(FailureCause.UNREACHABLE, error.detail)
            self._probe_error = error
            logger.warning(
                "kafka_admin.unreachable",
                bootstrap_servers=self._config.bootstrap_servers,
                cause=error.cause.value,
                error=error.detail,
            )
            return
        self._probe_error = None
        self.broker_count = len(meta.brokers)
        logger.info(
            "kafka_admin.connected",
            bootstrap_servers=self._config.bootstrap_servers,
            brokers=self.broker_count,
        )

    def create_topic(self, descriptor: TopicDescriptor, *, timeout: float) -> None:
        """Create one topic, spending at most about *timeout* seconds in total.

        The partition check after an acknowledged create only gets whatever
        is left of *timeout*; with nothing left it is skipped.
        """
        admin = self._require_admin()
        if self._probe_error is not None:
            raise TopicCreationError(self._probe_error.cause, self._probe_error.detail)
        deadline = time.monotonic() + timeout
        new_topic = NewTopic(
            descriptor.name,
            num_partitions=descriptor.partitions,
            replication_factor=descriptor.replication_factor,
            config=descriptor.effective_config(),
        )
        try:
            futures = admin.create_topics(
                [new_topic], operation_timeout=timeout, request_timeout=timeout
            )
        except KafkaException as exc:
            raise _error_from_exception(exc) from exc

        future = futures.get(descriptor.name)
        if future is None:
            raise TopicCreationError(
                FailureCause.OTHER, f"no result returned for topic '{descriptor.name}'"
            )
        try:
            future.result(timeout=timeout)
        except KafkaException as exc:
            raise _error_from_exception(exc) from exc
        except concurrent.futures.TimeoutError as exc:
            raise TopicCreationError(
                FailureCause.TIMEOUT, f"no acknowledgment within {timeout}s"
            ) from exc

        if self._verify_partitions:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.debug("kafka_admin.verify_skipped", topic=descriptor.name)
                return
            self._verify(descriptor, remaining)

    def _verify(self, descriptor: TopicDescriptor, timeout: float) -> None:
        """Detect a topic that was created with fewer partitions than requested."""
        admin = self._require_admin()
        try:
            meta = admin.list_topics(topic=descriptor.name, timeout=timeout)
        except KafkaException as exc:
            logger.debug(
                "kafka_admin.verify_skipped", topic=descriptor.name, error=str(exc)
            )
            return
        topic_meta = meta.topics.get(descriptor.name)
        if topic_meta is None or topic_meta.error is not None:
            # Not yet propagated to the broker we asked; nothing to compare.
            logger.debug("kafka_admin.verify_pending", topic=descriptor.name)
            return
        actual = len(topic_meta.partitions)
        if actual != descriptor.partitions:
            raise TopicCreationError(
                FailureCause.OTHER,
                f"partial creation: {actual} of {descriptor.partitions} partitions",
            )

    def close(self) -> None:
        # confluent-kafka releases the native handle when the client is dropped.
        if not self._closed:
            self._closed = True
            self._admin = None
            logger.debug("kafka_admin.closed")

    def _require_admin(self) -> Any:
        if self._closed:
            msg = "Kafka admin client is closed"
            raise RuntimeError(msg)
        return self._admin

    def __enter__(self) -> KafkaTopicAdmin:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


@contextmanager
def open_admin(
    config: KafkaConfig, *, verify_partitions: bool = True
) -> Iterator[KafkaTopicAdmin]:
    """Open a probed admin client for the duration of one reconciliation run."""
    with KafkaTopicAdmin(config, verify_partitions=verify_partitions) as admin:
        admin.connect()
        yield admin
