"""Last-write-wins sync policy.

Two copies of the document (for instance the local file and a remote one)
are reconciled by their ``modifiedAt`` stamps alone. The stamps are UTC
ISO-8601 strings of a fixed shape, so string comparison orders them.
There is no field-level merge: the newer document replaces the older one.
"""

from enum import Enum
from typing import Optional


class SyncDecision(str, Enum):
    """What to do with the local copy."""

    PUSH = "push"
    PULL = "pull"
    IN_SYNC = "in_sync"


def decide_sync(
    local_modified_at: Optional[str], remote_modified_at: Optional[str]
) -> SyncDecision:
    """Pick the direction of a sync.

    Args:
        local_modified_at: Stamp of the local document, if any.
        remote_modified_at: Stamp of the remote document, if any.

    Returns:
        PUSH when the local copy is newer or the remote one is missing,
        PULL when the remote copy is newer or the local one is missing,
        IN_SYNC when both stamps are equal or both are missing.

    Example:
        >>> decide_sync("2025-10-02T08:00:00.000Z", "2025-10-01T08:00:00.000Z")
        <SyncDecision.PUSH: 'push'>
    """
    local = local_modified_at or None
    remote = remote_modified_at or None
    if local == remote:
        return SyncDecision.IN_SYNC
    if remote is None:
        return SyncDecision.PUSH
    if local is None:
        return SyncDecision.PULL
    return SyncDecision.PUSH if local > remote else SyncDecision.PULL
