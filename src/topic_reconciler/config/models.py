"""Pydantic configuration models for topic provisioning."""

from __future__ import annotations

from enum import StrEnum
from typing import Self

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

# Kafka rejects names longer than 249 characters and anything outside this set.
TOPIC_NAME_PATTERN = r"^[a-zA-Z0-9._-]+$"
TOPIC_NAME_MAX_LENGTH = 249


class KafkaAuthMechanism(StrEnum):
    """Kafka SASL authentication mechanisms."""

    NONE = "none"
    SASL_PLAIN = "sasl_plain"
    SASL_SCRAM_256 = "sasl_scram_256"
    SASL_SCRAM_512 = "sasl_scram_512"


class TopicDescriptor(BaseModel):
    """Desired state of a single topic.

    Built once from static configuration and never mutated.  Only structural
    rules are enforced here; whether the cluster can actually honour the
    replication factor is left to the broker.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str = Field(
        min_length=1, max_length=TOPIC_NAME_MAX_LENGTH, pattern=TOPIC_NAME_PATTERN
    )
    partitions: int = Field(default=1, ge=1)
    replication_factor: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("replication_factor", "replicas"),
    )
    config: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("config", "config_overrides"),
    )
    compact: bool = False

    @field_validator("name")
    @classmethod
    def reject_reserved_names(cls, v: str) -> str:
        if v in (".", ".."):
            msg = f"Topic name '{v}' is reserved"
            raise ValueError(msg)
        return v

    @field_validator("config", mode="before")
    @classmethod
    def stringify_config_values(cls, v: object) -> object:
        # YAML turns `retention.ms: 60000` into an int; the broker wants strings.
        if isinstance(v, dict):
            return {str(k): _config_value(val) for k, val in v.items()}
        return v

    def effective_config(self) -> dict[str, str]:
        """Return the config overrides sent to the broker on creation."""
        cfg = dict(self.config)
        if self.compact:
            cfg["cleanup.policy"] = "compact"
        return cfg

    def __hash__(self) -> int:
        return hash(
            (
                self.name,
                self.partitions,
                self.replication_factor,
                tuple(sorted(self.effective_config().items())),
            )
        )


def _config_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class KafkaConfig(BaseModel):
    """Kafka admin connection settings."""

    bootstrap_servers: str = "localhost:9092"
    client_id: str = "topic-reconciler"
    # Bound on waiting for each create acknowledgment.
    operation_timeout_seconds: float = Field(default=30.0, gt=0)
    # Bound on the metadata probe issued when the admin client is opened.
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    # Auth / security
    security_protocol: str = "PLAINTEXT"
    auth_mechanism: KafkaAuthMechanism = KafkaAuthMechanism.NONE
    sasl_username: str | None = None
    sasl_password: SecretStr | None = None
    ssl_ca_location: str | None = None
    ssl_certificate_location: str | None = None
    ssl_key_location: str | None = None

    @model_validator(mode="after")
    def check_auth_requirements(self) -> Self:
        """SASL mechanisms need both credentials."""
        mech = self.auth_mechanism
        if mech != KafkaAuthMechanism.NONE and (
            not self.sasl_username or not self.sasl_password
        ):
            msg = (
                "sasl_username and sasl_password are required "
                f"when auth_mechanism is '{mech.value}'"
            )
            raise ValueError(msg)
        return self


class RetryConfig(BaseModel):
    """Bootstrap-level retry of a whole reconciliation run."""

    max_attempts: int = Field(default=1, ge=1)
    initial_wait_seconds: float = Field(default=1.0, gt=0)
    max_wait_seconds: float = Field(default=30.0, gt=0)
    multiplier: float = Field(default=2.0, ge=1.0)


class ProvisioningConfig(BaseModel):
    """Which topics to provision and under which deployment profiles."""

    enabled: bool = True
    profiles: list[str] = Field(default_factory=lambda: ["local"])
    active_profile: str = "default"
    fail_on_unsatisfied: bool = False
    verify_partitions: bool = True
    retry: RetryConfig = RetryConfig()
    topics: list[TopicDescriptor] = Field(default_factory=list)

    @field_validator("topics")
    @classmethod
    def validate_unique_names(cls, v: list[TopicDescriptor]) -> list[TopicDescriptor]:
        seen: set[str] = set()
        for topic in v:
            if topic.name in seen:
                msg = f"Duplicate topic name '{topic.name}'"
                raise ValueError(msg)
            seen.add(topic.name)
        return v


class LoggingConfig(BaseModel):
    """structlog output settings."""

    level: str = "INFO"
    json_output: bool = Field(
        default=False, validation_alias=AliasChoices("json_output", "json")
    )

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            msg = f"Unknown log level '{v}'"
            raise ValueError(msg)
        return level


class PlatformConfig(BaseModel, extra="forbid"):
    """Top-level configuration: broker connection, provisioning, logging."""

    kafka: KafkaConfig = KafkaConfig()
    provisioning: ProvisioningConfig = ProvisioningConfig()
    logging: LoggingConfig = LoggingConfig()
