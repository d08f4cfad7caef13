"""Entity inclusion filter."""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional


@dataclass(frozen=True)
class Inclusion:
    """Allow-list of entity ids. An empty list includes every entity."""
    entities: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_list(cls, entities: Optional[Iterable[str]]) -> "Inclusion":
        """Create an inclusion set, ignoring blank entries."""
        if not entities:
            return cls()
        return cls(frozenset(e.strip() for e in entities if e and e.strip()))

    def included(self, entity_id: str) -> bool:
        """Check whether events for an entity should be published."""
        if self.entities:
            return entity_id in self.entities
        # Every entity if no explicit inclusions.
        return True
