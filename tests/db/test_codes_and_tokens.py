"""Tests for verification code, secret token and partition tracker storage."""

import sqlite3

import pytest

from account_core.schema.types import TokenPurpose, VerificationPurpose
from account_core.utils import isodatetime

PAST = "2000-01-01T00:00:00.000000Z"
FUTURE = "2999-01-01T00:00:00.000000Z"


def _code(core, account_id, code="560001", expires_at=FUTURE):
    return core.verification.create(
        user_id=account_id,
        code=code,
        purpose=VerificationPurpose.REGISTRATION,
        expires_at=expires_at,
        created_at=isodatetime.now(),
    )


class TestVerificationCodeStore:
    """Tests for core.verification."""

    def test_create_starts_unused(self, core, student):
        code = _code(core, student.id)
        assert code.retry_count == 0
        assert code.consumed_at is None

    def test_find_latest_active_prefers_newest(self, core, student):
        _code(core, student.id, code="111111")
        newest = _code(core, student.id, code="222222")

        found = core.verification.find_latest_active(
            student.id, VerificationPurpose.REGISTRATION, isodatetime.now()
        )
        assert found.id == newest.id

    def test_find_latest_active_skips_expired(self, core, student):
        _code(core, student.id, expires_at=PAST)
        assert core.verification.find_latest_active(
            student.id, VerificationPurpose.REGISTRATION, isodatetime.now()
        ) is None

    def test_find_latest_active_scoped_by_purpose(self, core, student):
        _code(core, student.id)
        assert core.verification.find_latest_active(
            student.id, VerificationPurpose.EMAIL_CHANGE, isodatetime.now()
        ) is None

    def test_consume_active(self, core, student):
        _code(core, student.id, code="111111")
        _code(core, student.id, code="222222")
        now = isodatetime.now()

        assert core.verification.consume_active(student.id, VerificationPurpose.REGISTRATION, now) == 2
        assert core.verification.find_latest_active(student.id, VerificationPurpose.REGISTRATION, now) is None

    def test_fourth_try_blocked_by_schema(self, core, test_db, student):
        """retry_count 3 without consumption violates a CHECK constraint."""
        code = _code(core, student.id)
        with pytest.raises(sqlite3.IntegrityError):
            test_db.execute(
                "UPDATE verification_codes SET retry_count = 3 WHERE id = ?",
                (code.id,)
            )

    def test_failed_attempts_burn_on_third(self, core, student):
        code = _code(core, student.id)
        now = isodatetime.now()

        assert core.verification.record_failed_attempt(code.id, now).retry_count == 1
        assert core.verification.record_failed_attempt(code.id, now).consumed_at is None
        burned = core.verification.record_failed_attempt(code.id, now)

        assert burned.retry_count == 3
        assert burned.consumed_at == now
        assert core.verification.find_latest(student.id, VerificationPurpose.REGISTRATION).id == code.id

    def test_no_attempt_counted_on_burned_code(self, core, student):
        code = _code(core, student.id)
        now = isodatetime.now()
        for _ in range(3):
            core.verification.record_failed_attempt(code.id, now)

        assert core.verification.record_failed_attempt(code.id, now) is None
        assert core.verification.get_by_id(code.id).retry_count == 3

    def test_attempt_counted_from_stored_value(self, core, student):
        """Increments apply to the stored count, not a copy read earlier."""
        code = _code(core, student.id)
        now = isodatetime.now()
        core.verification.record_failed_attempt(code.id, now)

        assert code.retry_count == 0
        assert core.verification.record_failed_attempt(code.id, now).retry_count == 2

    def test_consume_only_once(self, core, student):
        code = _code(core, student.id)
        now = isodatetime.now()

        assert core.verification.consume(code.id, now) is True
        assert core.verification.consume(code.id, now) is False
        assert core.verification.record_failed_attempt(code.id, now) is None


class TestSecretTokenStore:
    """Tests for core.token."""

    def _token(self, core, account_id, token_id, expires_at=FUTURE):
        return core.token.create(
            user_id=account_id,
            purpose=TokenPurpose.PASSWORD_RESET,
            token_id=token_id,
            token_hash="hash",
            expires_at=expires_at,
            created_at=isodatetime.now(),
        )

    def test_find_valid_by_token_id(self, core, student):
        token = self._token(core, student.id, "11111111-1111-4111-8111-111111111111")
        found = core.token.find_valid_by_token_id(
            token.token_id, TokenPurpose.PASSWORD_RESET, isodatetime.now()
        )
        assert found.id == token.id

    def test_expired_or_wrong_purpose_not_found(self, core, student):
        token = self._token(core, student.id, "11111111-1111-4111-8111-111111111111", expires_at=PAST)
        now = isodatetime.now()
        assert core.token.find_valid_by_token_id(token.token_id, TokenPurpose.PASSWORD_RESET, now) is None
        assert core.token.find_valid_by_token_id(token.token_id, TokenPurpose.EMAIL_RESET, now) is None

    def test_one_outstanding_token_per_purpose(self, core, student):
        self._token(core, student.id, "11111111-1111-4111-8111-111111111111")
        with pytest.raises(sqlite3.IntegrityError):
            self._token(core, student.id, "22222222-2222-4222-8222-222222222222")

    def test_invalidate_outstanding_allows_new_token(self, core, student):
        first = self._token(core, student.id, "11111111-1111-4111-8111-111111111111")
        assert core.token.invalidate_outstanding(
            student.id, TokenPurpose.PASSWORD_RESET, isodatetime.now()
        ) == 1

        self._token(core, student.id, "22222222-2222-4222-8222-222222222222")
        assert core.token.get_by_token_id(first.token_id).used is True

    def test_email_reset_requires_both_emails(self, core, student):
        with pytest.raises(sqlite3.IntegrityError):
            core.token.create(
                user_id=student.id,
                purpose=TokenPurpose.EMAIL_RESET,
                token_id="33333333-3333-4333-8333-333333333333",
                token_hash="hash",
                expires_at=FUTURE,
                created_at=isodatetime.now(),
                new_email="new@x.com",
            )

    def test_mark_used_only_once(self, core, student):
        token = self._token(core, student.id, "11111111-1111-4111-8111-111111111111")
        assert core.token.mark_used(token.id, isodatetime.now()) is True
        assert core.token.mark_used(token.id, isodatetime.now()) is False

        stored = core.token.get_by_token_id(token.token_id)
        assert stored.used is True
        assert stored.used_at is not None


class TestPillarTrackerStore:
    """Tests for core.pillar."""

    def test_acquire_creates_tracker_at_base(self, core):
        tracker = core.pillar.acquire(560000)
        assert tracker.sub_pillar_base == 560000
        assert tracker.last_issued_number == 560000
        assert tracker.limit == 569999

    def test_acquire_returns_existing_tracker(self, core):
        core.pillar.save(core.pillar.acquire(560000).issue_next())
        assert core.pillar.acquire(560000).last_issued_number == 560001

    def test_acquire_opens_write_transaction(self, core, test_db):
        assert not test_db.in_transaction
        core.pillar.acquire(110000)
        assert test_db.in_transaction

    @pytest.mark.parametrize("base", [90000, 1000000, 115000])
    def test_invalid_base_rejected(self, core, base):
        with pytest.raises(sqlite3.IntegrityError):
            core.pillar.acquire(base)

    def test_cannot_pass_partition_limit(self, core, test_db):
        core.pillar.acquire(560000)
        with pytest.raises(sqlite3.IntegrityError):
            test_db.execute(
                "UPDATE code_pillar_tracker SET last_issued_number = 570000 WHERE sub_pillar_base = 560000"
            )
