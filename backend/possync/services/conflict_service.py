# Overview: Conflict resolution for pushed changes; last-write-wins on updated_at.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

CREATE = "create"
UPDATE = "update"
DELETE = "delete"
NOOP = "noop"
CONFLICT = "conflict"

REASON_SERVER_NEWER = "Server version is newer"
REASON_DELETED = "Record was deleted on server"


@dataclass(frozen=True)
class Resolution:
    """
    Decision for one incoming change against the stored row.

    client_updated_at is the effective timestamp of the incoming change
    (the server clock when the client sent none).
    """
    action: str
    client_updated_at: datetime
    server_updated_at: datetime | None = None
    reason: str | None = None


def resolve_change(existing, incoming: dict, *, now: datetime) -> Resolution:
    """
    Decide what to do with a pushed record.

    - not stored: create it; a delete of a record never stored is a no-op
    - incoming tombstone: delete unconditionally, bypassing timestamps
    - stored row is tombstoned: conflict, deletes are not resurrected
    - otherwise last-write-wins: incoming applies when its updated_at is
      greater than or equal to the stored one (ties favor the client)
    """
    client_updated_at = incoming.get("updated_at") or now
    tombstone = incoming.get("deleted_at") is not None

    if existing is None:
        return Resolution(NOOP if tombstone else CREATE, client_updated_at)

    if tombstone:
        return Resolution(DELETE, client_updated_at, existing.updated_at)

    if existing.deleted_at is not None:
        return Resolution(CONFLICT, client_updated_at, existing.updated_at, REASON_DELETED)

    if client_updated_at >= existing.updated_at:
        return Resolution(UPDATE, client_updated_at, existing.updated_at)

    return Resolution(CONFLICT, client_updated_at, existing.updated_at, REASON_SERVER_NEWER)
