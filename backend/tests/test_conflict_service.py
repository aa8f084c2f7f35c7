from datetime import datetime, timedelta
from types import SimpleNamespace

from possync.services import conflict_service
from possync.services.conflict_service import resolve_change


T = datetime(2024, 3, 1, 10, 0, 0)
NOW = datetime(2024, 3, 5, 9, 0, 0)


def stored(updated_at=T, deleted_at=None):
    return SimpleNamespace(updated_at=updated_at, deleted_at=deleted_at)


def test_unknown_record_is_created():
    resolution = resolve_change(None, {"id": "a", "updated_at": T}, now=NOW)
    assert resolution.action == conflict_service.CREATE
    assert resolution.client_updated_at == T


def test_missing_client_timestamp_uses_server_clock():
    resolution = resolve_change(None, {"id": "a"}, now=NOW)
    assert resolution.client_updated_at == NOW


def test_delete_of_unknown_record_is_noop():
    resolution = resolve_change(None, {"id": "a", "deleted_at": T}, now=NOW)
    assert resolution.action == conflict_service.NOOP


def test_newer_client_write_wins():
    resolution = resolve_change(stored(), {"updated_at": T + timedelta(seconds=1)}, now=NOW)
    assert resolution.action == conflict_service.UPDATE


def test_tie_favors_incoming_write():
    resolution = resolve_change(stored(), {"updated_at": T}, now=NOW)
    assert resolution.action == conflict_service.UPDATE


def test_older_client_write_is_conflict():
    client_ts = T - timedelta(seconds=1)
    resolution = resolve_change(stored(), {"updated_at": client_ts}, now=NOW)

    assert resolution.action == conflict_service.CONFLICT
    assert resolution.reason == conflict_service.REASON_SERVER_NEWER
    assert resolution.server_updated_at == T
    assert resolution.client_updated_at == client_ts


def test_tombstone_bypasses_timestamps():
    # Delete stamped long before the stored version still applies
    resolution = resolve_change(
        stored(),
        {"updated_at": T - timedelta(days=3), "deleted_at": T - timedelta(days=3)},
        now=NOW,
    )
    assert resolution.action == conflict_service.DELETE


def test_update_against_tombstone_is_conflict():
    resolution = resolve_change(
        stored(deleted_at=T),
        {"updated_at": T + timedelta(days=1)},
        now=NOW,
    )
    assert resolution.action == conflict_service.CONFLICT
    assert resolution.reason == conflict_service.REASON_DELETED
