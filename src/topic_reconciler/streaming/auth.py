"""Kafka security settings for the admin client."""

from __future__ import annotations

from typing import Any

from topic_reconciler.config.models import KafkaAuthMechanism, KafkaConfig

_SASL_MECHANISMS: dict[KafkaAuthMechanism, str] = {
    KafkaAuthMechanism.SASL_PLAIN: "PLAIN",
    KafkaAuthMechanism.SASL_SCRAM_256: "SCRAM-SHA-256",
    KafkaAuthMechanism.SASL_SCRAM_512: "SCRAM-SHA-512",
}


def build_kafka_auth_config(config: KafkaConfig) -> dict[str, Any]:
    """Build confluent_kafka config entries for authentication.

    Returns an empty dict for unauthenticated clusters, otherwise the
    ``security.protocol``, SSL paths and SASL credentials to merge into the
    AdminClient constructor arguments.
    """
    if config.auth_mechanism == KafkaAuthMechanism.NONE:
        return {}

    auth: dict[str, Any] = {"security.protocol": config.security_protocol}

    for key, value in (
        ("ssl.ca.location", config.ssl_ca_location),
        ("ssl.certificate.location", config.ssl_certificate_location),
        ("ssl.key.location", config.ssl_key_location),
    ):
        if value:
            auth[key] = value

    auth["sasl.mechanism"] = _SASL_MECHANISMS[config.auth_mechanism]
    auth["sasl.username"] = config.sasl_username
    auth["sasl.password"] = (
        config.sasl_password.get_secret_value() if config.sasl_password else ""
    )
    return auth


def build_admin_config(config: KafkaConfig) -> dict[str, Any]:
    """Full AdminClient config: connection, client id and security."""
    conf: dict[str, Any] = {
        "bootstrap.servers": config.bootstrap_servers,
        "client.id": config.client_id,
    }
    conf.update(build_kafka_auth_config(config))
    return conf
