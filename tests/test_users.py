from datetime import timedelta

import pytest

from app.core.config import settings
from app.core.errors import Conflict, ErrorCode, NotFound, ValidationFailed
from app.models.enums import PresenceStatus
from app.services.scheduler_service import scheduler_service
from app.services.user_service import user_service, validate_handle
from app.utils.time_utils import utc_now


@pytest.mark.parametrize("handle, ok", [
    ("ab", False),
    ("a" * 21, False),
    ("bad-handle", False),
    ("admin", False),
    ("river_otter_7", True),
])
def test_validate_handle(handle, ok):
    assert validate_handle(handle)[0] is ok


def test_register_conflicts(db, users):
    with pytest.raises(Conflict) as exc:
        user_service.register(db, "alice")
    assert exc.value.code == ErrorCode.PROFILE_EXISTS

    with pytest.raises(Conflict) as exc:
        user_service.register(db, "erin", handle="bob")
    assert exc.value.code == ErrorCode.HANDLE_TAKEN


def test_update_profile(db, users):
    profile = user_service.update_profile(db, "alice", display_name="Alice L.", handle="alice_l")

    assert profile.display_name == "Alice L."
    assert user_service.find_by_handle(db, "alice_l").user_id == "alice"

    with pytest.raises(ValidationFailed) as exc:
        user_service.update_profile(db, "alice", handle="no spaces")
    assert exc.value.code == ErrorCode.INVALID_HANDLE

    with pytest.raises(NotFound):
        user_service.update_profile(db, "nobody", bio="hi")


def test_search_by_handle_prefix(db, users):
    user_service.register(db, "carl", handle="carl")

    found = [p.user_id for p in user_service.search_by_handle(db, "car")]

    assert found == ["carl", "carol"]
    assert user_service.search_by_handle(db, "  ") == []


def test_heartbeat_and_sweep(db, users):
    user_service.heartbeat(db, "alice", PresenceStatus.ONLINE)
    bob = user_service.heartbeat(db, "bob", PresenceStatus.ONLINE)
    assert user_service.is_online(bob)

    bob.last_seen_at = utc_now() - timedelta(seconds=settings.PRESENCE_TIMEOUT_SECONDS + 5)
    db.commit()
    assert not user_service.is_online(bob)

    assert user_service.sweep_stale_presence(db) == 1

    db.expire_all()
    assert user_service.get_profile(db, "bob").presence == PresenceStatus.OFFLINE
    assert user_service.get_profile(db, "alice").presence == PresenceStatus.ONLINE


def test_scheduled_sweep_uses_its_own_session(db, users):
    profile = user_service.heartbeat(db, "carol", PresenceStatus.AWAY)
    profile.last_seen_at = utc_now() - timedelta(hours=1)
    db.commit()

    assert scheduler_service.sweep_presence() == 1

    db.expire_all()
    assert user_service.get_profile(db, "carol").presence == PresenceStatus.OFFLINE
