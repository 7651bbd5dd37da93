"""Tests for password reset and email reset tokens."""

import threading

import pytest

from account_core.accounts import reset_tokens
from account_core.accounts.passwords import hash_password, verify_password
from account_core.config import settings
from account_core.db import get_core
from account_core.exceptions import AlreadyExists, InvalidToken, ResourceNotFound
from account_core.schema.types import Role, TokenPurpose

TOKEN_ID = "550e8400-e29b-41d4-a716-446655440000"
NEW_PASSWORD = "BrandNewPass456"


class TestTokenFormat:
    def test_format_then_parse(self):
        token = reset_tokens.format_token(TOKEN_ID, "s3cr3t")
        assert token == f"{TOKEN_ID}.s3cr3t"
        assert reset_tokens.parse_token(token) == (TOKEN_ID, "s3cr3t")

    @pytest.mark.parametrize("token", [
        None,
        "",
        TOKEN_ID,
        f"{TOKEN_ID}.",
        "not-a-uuid.secret",
        ".secret",
    ])
    def test_malformed_tokens(self, token):
        assert reset_tokens.parse_token(token) is None

    def test_issued_secret_is_stored_hashed(self, core, student):
        external = reset_tokens.issue(core, student, TokenPurpose.PASSWORD_RESET)
        token_id, token_secret = reset_tokens.parse_token(external)

        stored = core.token.get_by_token_id(token_id)
        assert stored.token_hash != token_secret
        assert verify_password(token_secret, stored.token_hash)


class TestPasswordReset:
    """request_password_reset / confirm_password_reset."""

    def test_unknown_email_gets_same_message_without_token(self, core, student):
        known = reset_tokens.request_password_reset(core, student.email)
        unknown = reset_tokens.request_password_reset(core, "nobody@example.com")

        assert unknown == {"message": reset_tokens.PASSWORD_RESET_MESSAGE}
        assert known["message"] == unknown["message"]
        assert "token" in known

    def test_confirm_sets_new_password(self, core, student):
        token = reset_tokens.request_password_reset(core, student.email)["token"]

        account = reset_tokens.confirm_password_reset(core, token, NEW_PASSWORD)

        assert verify_password(NEW_PASSWORD, account.password_hash)
        stored = core.account.get_by_id(student.id)
        assert verify_password(NEW_PASSWORD, stored.password_hash)

    def test_token_is_single_use(self, core, student):
        token = reset_tokens.request_password_reset(core, student.email)["token"]
        reset_tokens.confirm_password_reset(core, token, NEW_PASSWORD)

        with pytest.raises(InvalidToken):
            reset_tokens.confirm_password_reset(core, token, "AnotherPass789")

    def test_new_request_invalidates_previous_token(self, core, student):
        first = reset_tokens.request_password_reset(core, student.email)["token"]
        second = reset_tokens.request_password_reset(core, student.email)["token"]

        with pytest.raises(InvalidToken):
            reset_tokens.confirm_password_reset(core, first, NEW_PASSWORD)
        reset_tokens.confirm_password_reset(core, second, NEW_PASSWORD)

    def test_failures_share_one_message(self, core, student):
        token = reset_tokens.request_password_reset(core, student.email)["token"]
        token_id, _ = reset_tokens.parse_token(token)

        messages = set()
        for bad in ["garbage", f"{token_id}.wrong-secret", f"{TOKEN_ID}.whatever"]:
            with pytest.raises(InvalidToken) as exc_info:
                reset_tokens.confirm_password_reset(core, bad, NEW_PASSWORD)
            messages.add(exc_info.value.message)

        assert messages == {"Invalid or expired password reset token"}
        # A wrong secret does not use up the real token
        reset_tokens.confirm_password_reset(core, token, NEW_PASSWORD)

    def test_redeemed_token_used_meanwhile_cannot_be_spent(self, core, student):
        external = reset_tokens.request_password_reset(core, student.email)["token"]
        token = reset_tokens.redeem(core, external, TokenPurpose.PASSWORD_RESET)
        reset_tokens.confirm_password_reset(core, external, NEW_PASSWORD)

        with pytest.raises(InvalidToken) as exc_info:
            reset_tokens.spend(core, token)
        assert exc_info.value.message == "Invalid or expired password reset token"

    def test_expired_token_rejected(self, core, student, monkeypatch):
        monkeypatch.setattr(settings, "password_reset_ttl_minutes", 0)
        token = reset_tokens.request_password_reset(core, student.email)["token"]

        with pytest.raises(InvalidToken):
            reset_tokens.confirm_password_reset(core, token, NEW_PASSWORD)

    def test_email_reset_token_not_accepted(self, core, student):
        token = reset_tokens.request_email_reset(core, student.id, student.email, "new@example.com")

        with pytest.raises(InvalidToken):
            reset_tokens.confirm_password_reset(core, token, NEW_PASSWORD)


class TestEmailReset:
    """request_email_reset / confirm_email_reset."""

    def test_confirm_changes_email(self, core, student):
        token = reset_tokens.request_email_reset(core, student.id, student.email, "New.Address@Example.com")

        new_email = reset_tokens.confirm_email_reset(core, token)

        assert new_email == "new.address@example.com"
        assert core.account.get_by_id(student.id).email == "new.address@example.com"
        assert core.account.get_by_email(student.email) is None

    def test_old_email_compared_case_insensitively(self, core, student):
        token = reset_tokens.request_email_reset(core, student.id, student.email.upper(), "new@example.com")
        assert reset_tokens.confirm_email_reset(core, token) == "new@example.com"

    def test_old_email_mismatch_is_not_found(self, core, student):
        with pytest.raises(ResourceNotFound) as exc_info:
            reset_tokens.request_email_reset(core, student.id, "other@example.com", "new@example.com")
        assert exc_info.value.message == "User not found"

    def test_unknown_account_is_not_found(self, core):
        with pytest.raises(ResourceNotFound) as exc_info:
            reset_tokens.request_email_reset(core, TOKEN_ID, "a@example.com", "b@example.com")
        assert exc_info.value.message == "User not found"

    def test_new_email_taken_at_request(self, core, student, make_student):
        make_student(email="taken@example.com", nic="other-nic", code_number="560002")

        with pytest.raises(AlreadyExists):
            reset_tokens.request_email_reset(core, student.id, student.email, "taken@example.com")

    def test_new_email_taken_before_confirm(self, core, student, make_student):
        token = reset_tokens.request_email_reset(core, student.id, student.email, "wanted@example.com")
        make_student(email="wanted@example.com", nic="other-nic", code_number="560002")

        with pytest.raises(AlreadyExists):
            reset_tokens.confirm_email_reset(core, token)
        assert core.account.get_by_id(student.id).email == student.email

    def test_stale_old_email_rejected(self, core, student):
        token = reset_tokens.request_email_reset(core, student.id, student.email, "new@example.com")
        core.account.save(student.change_email("changed@example.com"))

        with pytest.raises(InvalidToken) as exc_info:
            reset_tokens.confirm_email_reset(core, token)
        assert exc_info.value.message == "Invalid or expired email reset token"

    def test_token_is_single_use(self, core, student):
        token = reset_tokens.request_email_reset(core, student.id, student.email, "new@example.com")
        reset_tokens.confirm_email_reset(core, token)

        with pytest.raises(InvalidToken):
            reset_tokens.confirm_email_reset(core, token)

    def test_new_request_invalidates_previous_token(self, core, student):
        first = reset_tokens.request_email_reset(core, student.id, student.email, "one@example.com")
        second = reset_tokens.request_email_reset(core, student.id, student.email, "two@example.com")

        with pytest.raises(InvalidToken):
            reset_tokens.confirm_email_reset(core, first)
        assert reset_tokens.confirm_email_reset(core, second) == "two@example.com"


class TestConcurrentConfirm:
    """Parallel confirms of one token, each in its own atomic Core."""

    def test_parallel_confirms_spend_token_once(self, db_file):
        with get_core(atomic=True) as core:
            account = core.account.create(
                full_name="Parallel Admin",
                email="parallel@example.com",
                role=Role.ADMIN,
                password_hash=hash_password("AdminPass123"),
                is_verified=True,
            )
            token = reset_tokens.request_password_reset(core, account.email)["token"]

        confirmed = []
        rejected = []
        errors = []
        lock = threading.Lock()

        def worker(new_password):
            try:
                with get_core(atomic=True) as core:
                    reset_tokens.confirm_password_reset(core, token, new_password)
                with lock:
                    confirmed.append(new_password)
            except InvalidToken:
                with lock:
                    rejected.append(new_password)
            except Exception as e:
                with lock:
                    errors.append(e)

        passwords = [f"ParallelPass{i}00" for i in range(4)]
        threads = [threading.Thread(target=worker, args=(p,)) for p in passwords]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(confirmed) == 1
        assert len(rejected) == 3

        reader = get_core()
        stored = reader.account.get_by_id(account.id)
        assert verify_password(confirmed[0], stored.password_hash)
