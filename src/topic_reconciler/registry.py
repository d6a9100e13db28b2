"""Topic descriptor registry: the declared desired state."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from topic_reconciler.config.models import ProvisioningConfig, TopicDescriptor


class TopicRegistry:
    """Ordered, immutable set of topic descriptors keyed by name."""

    def __init__(self, descriptors: Iterable[TopicDescriptor] = ()) -> None:
        items = tuple(descriptors)
        seen: set[str] = set()
        for d in items:
            if d.name in seen:
                msg = f"Duplicate topic name '{d.name}' in registry"
                raise ValueError(msg)
            seen.add(d.name)
        self._descriptors = items

    @classmethod
    def from_config(cls, config: ProvisioningConfig) -> TopicRegistry:
        return cls(config.topics)

    def descriptors(self) -> tuple[TopicDescriptor, ...]:
        """Return descriptors in declaration order."""
        return self._descriptors

    def names(self) -> list[str]:
        return [d.name for d in self._descriptors]

    def __iter__(self) -> Iterator[TopicDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __repr__(self) -> str:
        return f"TopicRegistry({self.names()!r})"
