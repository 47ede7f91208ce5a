from datetime import timedelta

import pytest

from app.core.exceptions import ErrorCode, InternalServiceError
from app.models import Activity, ActivityEventType, ActivityStatus, ShareStatus
from app.services import share_service, share_store
from app.services.activity_service import ClientInfo, list_file_activities
from app.services.share_service import check_share_access, evaluate_share


def events(db, file):
    return [(a.event_type, a.status) for a in reversed(list_file_activities(db, file.id))]


def test_unknown_token_is_not_found_and_not_logged(db, clock):
    decision = check_share_access(db, "tk_" + "0" * 64, is_download=True, clock=clock)

    assert decision.status_code == 404
    assert decision.error_code == ErrorCode.FILE_NOT_FOUND
    assert not decision.allowed
    assert db.query(Activity).count() == 0


def test_revoked_beats_expired(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, status=ShareStatus.REVOKED, expiry_at_utc=clock() - timedelta(hours=1))

    decision = check_share_access(db, file.access_token, is_download=True, clock=clock)

    assert decision.status_code == 403
    assert decision.error_code == ErrorCode.LINK_REVOKED
    assert decision.message == "This file link has been revoked"


def test_expired_beats_limit(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, max_downloads=1, used_downloads=1)
    clock.advance(hours=25)

    decision = check_share_access(db, file.access_token, is_download=True, clock=clock)

    assert decision.error_code == ErrorCode.LINK_EXPIRED


def test_link_usable_at_exact_expiry(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, expiry_at_utc=clock())

    assert check_share_access(db, file.access_token, is_download=True, clock=clock).allowed


def test_limit_exceeded(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, max_downloads=2, used_downloads=2)

    decision = check_share_access(db, file.access_token, is_download=True, clock=clock)

    assert decision.status_code == 403
    assert decision.error_code == ErrorCode.LIMIT_EXCEEDED
    db.refresh(file)
    assert file.used_downloads == 2


def test_unlimited_downloads(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, max_downloads=0)

    for _ in range(5):
        assert check_share_access(db, file.access_token, is_download=True, clock=clock).allowed
    db.refresh(file)
    assert file.used_downloads == 5


def test_download_consumes_slot_and_logs_success(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, max_downloads=1)
    client = ClientInfo(ip_address="10.0.0.7", user_agent="curl/8.0")

    first = check_share_access(db, file.access_token, is_download=True, client=client, clock=clock)
    second = check_share_access(db, file.access_token, is_download=True, client=client, clock=clock)

    assert first.allowed and first.status_code == 200
    assert first.file.used_downloads == 1
    assert second.error_code == ErrorCode.LIMIT_EXCEEDED
    assert events(db, file) == [
        (ActivityEventType.DOWNLOAD_SUCCESS, ActivityStatus.SUCCESS),
        (ActivityEventType.DOWNLOAD_BLOCKED, ActivityStatus.BLOCKED),
    ]
    latest = list_file_activities(db, file.id)[0]
    assert latest.details == "Download blocked - limit exceeded"
    assert latest.ip_address == "10.0.0.7"
    assert latest.user_agent == "curl/8.0"


def test_metadata_access_does_not_consume_slot(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, max_downloads=1)

    for _ in range(3):
        decision = check_share_access(db, file.access_token, is_download=False, clock=clock)
        assert decision.allowed
    db.refresh(file)
    assert file.used_downloads == 0
    assert events(db, file) == [(ActivityEventType.ACCESS_ATTEMPT, ActivityStatus.SUCCESS)] * 3


def test_metadata_access_on_revoked_link_is_logged_as_access_attempt(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, status=ShareStatus.REVOKED)

    decision = check_share_access(db, file.access_token, is_download=False, clock=clock)

    assert decision.error_code == ErrorCode.LINK_REVOKED
    assert events(db, file) == [(ActivityEventType.ACCESS_ATTEMPT, ActivityStatus.BLOCKED)]
    assert list_file_activities(db, file.id)[0].details == "Access attempt with revoked token"


def test_metadata_access_on_expired_link_is_logged_as_blocked(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock)
    clock.advance(days=2)

    check_share_access(db, file.access_token, is_download=False, clock=clock)

    assert events(db, file) == [(ActivityEventType.DOWNLOAD_BLOCKED, ActivityStatus.BLOCKED)]
    assert list_file_activities(db, file.id)[0].details == "Access blocked - token expired"


@pytest.mark.parametrize(
    "fields, advance",
    [
        ({}, {}),
        ({"status": ShareStatus.REVOKED}, {}),
        ({}, {"hours": 48}),
        ({"max_downloads": 1, "used_downloads": 1}, {}),
    ],
)
@pytest.mark.parametrize("is_download", [True, False])
def test_each_decision_writes_exactly_one_event(db, clock, create_user, create_file, fields, advance, is_download):
    owner = create_user(db)
    file = create_file(db, owner, clock, **fields)
    clock.advance(**advance)

    check_share_access(db, file.access_token, is_download=is_download, clock=clock)

    assert db.query(Activity).filter(Activity.file_id == file.id).count() == 1


def test_racing_downloads_for_last_slot(session_factory, clock, create_user, create_file, monkeypatch):
    setup = session_factory()
    owner = create_user(setup)
    file = create_file(setup, owner, clock, max_downloads=1)
    token = file.access_token
    setup.close()

    first, second = session_factory(), session_factory()
    take_slot = share_store.atomic_increment_used_downloads
    results = {}

    def interleaved(db, *args):
        # the first request completes between the second one's gate check and its UPDATE
        if db is second and "winner" not in results:
            results["winner"] = check_share_access(first, token, is_download=True, clock=clock)
        return take_slot(db, *args)

    monkeypatch.setattr(share_store, "atomic_increment_used_downloads", interleaved)
    try:
        loser = check_share_access(second, token, is_download=True, clock=clock)
    finally:
        first.close()
        second.close()

    assert results["winner"].allowed
    assert loser.error_code == ErrorCode.LIMIT_EXCEEDED

    check = session_factory()
    try:
        stored = share_store.find_file_by_access_token(check, token)
        assert stored.used_downloads == 1
        assert events(check, stored) == [
            (ActivityEventType.DOWNLOAD_SUCCESS, ActivityStatus.SUCCESS),
            (ActivityEventType.DOWNLOAD_BLOCKED, ActivityStatus.BLOCKED),
        ]
    finally:
        check.close()


def test_gate_sees_changes_made_behind_loaded_instance(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock)
    assert file.status == ShareStatus.ACTIVE

    share_store.mark_revoked(db, file.id)
    db.commit()

    decision = check_share_access(db, file.access_token, is_download=False, clock=clock)

    assert decision.error_code == ErrorCode.LINK_REVOKED


def test_failed_success_event_rolls_back_slot(db, clock, create_user, create_file, monkeypatch):
    owner = create_user(db)
    file = create_file(db, owner, clock, max_downloads=1)

    def broken(*args, **kwargs):
        raise RuntimeError("activity table unavailable")

    monkeypatch.setattr(share_service, "record_activity", broken)

    with pytest.raises(InternalServiceError):
        check_share_access(db, file.access_token, is_download=True, clock=clock)

    db.refresh(file)
    assert file.used_downloads == 0


def test_evaluate_share_order(db, clock, create_user, create_file):
    owner = create_user(db)
    file = create_file(db, owner, clock, max_downloads=1, used_downloads=1)

    assert evaluate_share(file, clock()) == ErrorCode.LIMIT_EXCEEDED
    assert evaluate_share(file, clock() + timedelta(days=2)) == ErrorCode.LINK_EXPIRED
    file.status = ShareStatus.REVOKED
    assert evaluate_share(file, clock() + timedelta(days=2)) == ErrorCode.LINK_REVOKED
