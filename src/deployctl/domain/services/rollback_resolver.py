"""Rollback target resolution over a service's revision history."""

from __future__ import annotations

from collections.abc import Iterable

from deployctl.domain.errors import NoRollbackTargetError
from deployctl.domain.models.revision import Revision, RevisionOutcome


def resolve_rollback_target(
    history: Iterable[Revision], active_sequence: int | None = None
) -> Revision:
    """Select the revision a rollback should restore.

    Walks backward from the active revision and returns the most recent
    entry whose outcome is ``succeeded``. Failed entries are skipped, and so
    are rollback entries, which only repeat an older artifact. History is
    totally ordered by sequence number, so there are no ties.

    ``active_sequence`` defaults to the newest healthy revision in
    ``history``.
    """
    ordered = sorted(history, key=lambda r: r.sequence)
    if not ordered:
        raise NoRollbackTargetError("Revision history is empty")

    if active_sequence is None:
        healthy = [r for r in ordered if r.outcome.is_healthy]
        if not healthy:
            raise NoRollbackTargetError("No healthy revision is active")
        active_sequence = healthy[-1].sequence

    for revision in reversed(ordered):
        if revision.sequence >= active_sequence:
            continue
        if revision.outcome == RevisionOutcome.SUCCEEDED:
            return revision

    raise NoRollbackTargetError(
        f"No succeeded revision older than {active_sequence} in history"
    )
