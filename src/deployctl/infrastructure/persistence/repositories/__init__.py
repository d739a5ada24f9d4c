"""Repository implementations."""

from deployctl.infrastructure.persistence.repositories.event_log import (
    SqlLifecycleEventLog,
)
from deployctl.infrastructure.persistence.repositories.revision_store import (
    SqlRevisionHistoryStore,
)


__all__ = [
    "SqlLifecycleEventLog",
    "SqlRevisionHistoryStore",
]
