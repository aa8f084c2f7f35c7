# Overview: Idempotency ledger; recognizes retried pushes of an already applied change.

from __future__ import annotations

from .repository import get_repository


def resolve(user_id: str, entity_type: str, idempotency_key: str | None) -> str | None:
    """
    Return the id of the record already stored under this idempotency key.

    A hit means the incoming change is a retry of one that was applied
    before (e.g. the response was lost on the network): the caller must
    report it as synced and perform no further mutation, so a retried push
    neither creates a duplicate row nor decrements inventory twice.

    None when the change carries no key or the key is unseen; the caller
    then falls through to id-based matching.
    """
    if not idempotency_key:
        return None

    existing = get_repository(entity_type).get_by_idempotency_key(user_id, idempotency_key)
    if existing is None:
        return None
    return existing.id
