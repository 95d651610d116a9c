"""Tests for the user directory and identity provider."""

from unittest.mock import patch

import pytest

from formflow.errors import BackendUnavailable, EmailAlreadyExists, NotFound, ValidationError
from formflow.models.enums import UserRole, UserStatus
from formflow.services.persistence import CREDENTIALS, USERS
from formflow.services.submissions import ImageUpload


def fail_writes_to(store, method, collection):
    """Patch ``store.<method>`` so it fails for one collection only."""
    original = getattr(store, method)

    def side_effect(target, *args, **kwargs):
        if target == collection:
            raise BackendUnavailable()
        return original(target, *args, **kwargs)

    return patch.object(store, method, side_effect=side_effect)


class TestRegister:
    def test_register_creates_pending_user(self, directory, store):
        """Test registration stores a pending user without role or password."""
        user_id = directory.register(" Budi Santoso ", "Logistics", "Budi@Example.com", "testpass123")

        user = directory.get(user_id)
        assert user.name == "Budi Santoso"
        assert user.email == "budi@example.com"
        assert user.status == UserStatus.PENDING
        assert user.role == UserRole.USER

        record = store.get(USERS, user_id)
        assert "role" not in record
        assert not any("password" in key for key in record)

    def test_password_is_stored_as_hash(self, directory, store):
        """Test the credential keeps a bcrypt hash, never the password."""
        user_id = directory.register("Budi Santoso", "Logistics", "budi@example.com", "testpass123")

        credential = store.get(CREDENTIALS, user_id)
        assert credential["email"] == "budi@example.com"
        assert credential["password_hash"] != "testpass123"
        assert credential["password_hash"].startswith("$2")

    def test_duplicate_email_is_case_insensitive(self, directory):
        """Test registering an email that differs only in case fails."""
        directory.register("Budi Santoso", "Logistics", "budi@example.com", "testpass123")

        with pytest.raises(EmailAlreadyExists):
            directory.register("Another Budi", "Finance", "BUDI@example.com", "testpass123")

    def test_admin_email_is_reserved(self, directory):
        """Test nobody can register with an administrator's email."""
        with pytest.raises(EmailAlreadyExists):
            directory.register("Sneaky", "IT", "ADMIN@EXAMPLE.COM", "testpass123")

    @pytest.mark.parametrize(
        "name,division,email,password,message",
        [
            ("B", "Logistics", "b@example.com", "testpass123", "Name"),
            ("Budi", "  ", "b@example.com", "testpass123", "Division"),
            ("Budi", "Logistics", "not-an-email", "testpass123", "email"),
            ("Budi", "Logistics", "b@example.com", "12345", "Password"),
        ],
    )
    def test_field_rules(self, directory, name, division, email, password, message):
        """Test each registration field rule names the offending field."""
        with pytest.raises(ValidationError) as exc_info:
            directory.register(name, division, email, password)

        assert message in exc_info.value.message

    def test_failed_record_write_removes_credential(self, directory, identity, store):
        """Test a failed profile write leaves no orphaned credential."""
        with fail_writes_to(store, "put", USERS):
            with pytest.raises(BackendUnavailable):
                directory.register("Budi Santoso", "Logistics", "budi@example.com", "testpass123")

        assert store.list(CREDENTIALS) == []
        assert identity.authenticate("budi@example.com", "testpass123") is None


class TestApprove:
    def test_approve(self, directory):
        """Test approving a pending user."""
        user_id = directory.register("Budi Santoso", "Logistics", "budi@example.com", "testpass123")

        assert directory.approve(user_id).status == UserStatus.APPROVED
        assert directory.get(user_id).status == UserStatus.APPROVED

    def test_approve_is_idempotent(self, approved_user, directory):
        """Test approving an approved user changes nothing."""
        again = directory.approve(approved_user.id)

        assert again == approved_user

    def test_approve_unknown_user(self, directory):
        """Test approving a missing user fails."""
        with pytest.raises(NotFound):
            directory.approve("missing")


class TestUpdateEmail:
    def test_update_email_moves_login(self, directory, identity, approved_user):
        """Test the new email logs in and the old one no longer does."""
        updated = directory.update_email(approved_user.id, "budi.new@example.com")

        assert updated.email == "budi.new@example.com"
        assert identity.authenticate("budi.new@example.com", "testpass123") == approved_user.id
        assert identity.authenticate(approved_user.email, "testpass123") is None

    def test_update_to_taken_email(self, directory, approved_user):
        """Test an email held by another user or an admin is rejected."""
        directory.register("Siti Rahma", "Finance", "siti@example.com", "testpass123")

        with pytest.raises(EmailAlreadyExists):
            directory.update_email(approved_user.id, "siti@example.com")
        with pytest.raises(EmailAlreadyExists):
            directory.update_email(approved_user.id, "admin@example.com")

    def test_update_unknown_user(self, directory):
        """Test changing the email of a missing user fails."""
        with pytest.raises(NotFound):
            directory.update_email("missing", "who@example.com")

    def test_failed_record_write_restores_credential(self, directory, identity, store, approved_user):
        """Test a failed profile write rolls the credential back."""
        with fail_writes_to(store, "patch", USERS):
            with pytest.raises(BackendUnavailable):
                directory.update_email(approved_user.id, "budi.new@example.com")

        assert directory.get(approved_user.id).email == approved_user.email
        assert identity.get_email(approved_user.id) == approved_user.email
        assert identity.authenticate(approved_user.email, "testpass123") == approved_user.id


class TestUpdatePassword:
    def test_update_password(self, directory, identity, approved_user):
        """Test only the new password works after a change."""
        directory.update_password(approved_user.id, "brand-new-secret")

        assert identity.authenticate(approved_user.email, "brand-new-secret") == approved_user.id
        assert identity.authenticate(approved_user.email, "testpass123") is None

    def test_short_password(self, directory, approved_user):
        """Test a too-short password is rejected."""
        with pytest.raises(ValidationError):
            directory.update_password(approved_user.id, "123")

    def test_unknown_user(self, directory):
        """Test changing the password of a missing user fails."""
        with pytest.raises(NotFound):
            directory.update_password("missing", "brand-new-secret")


class TestDelete:
    def test_delete_cascades_to_credential(self, directory, store, approved_user):
        """Test deleting a user removes their credential too."""
        assert directory.delete(approved_user.id) is True

        assert directory.get(approved_user.id) is None
        assert store.get(CREDENTIALS, approved_user.id) is None

    def test_delete_missing_user_is_satisfied(self, directory):
        """Test deleting a missing user reports nothing deleted."""
        assert directory.delete("missing") is False

    def test_email_can_be_reused_after_delete(self, directory, approved_user):
        """Test a deleted user's email is free to register again."""
        directory.delete(approved_user.id)

        directory.register("Budi Again", "Logistics", approved_user.email, "testpass123")

    def test_submissions_survive_user_deletion(self, directory, repository, approved_user, png_bytes):
        """Test submissions keep their owner snapshot after the owner is deleted."""
        submission_id = repository.create(
            approved_user.id,
            approved_user.name,
            approved_user.division,
            "Twenty boxes of printer paper",
            [ImageUpload(content_type="image/png", data=png_bytes)],
        )

        directory.delete(approved_user.id)

        submission = repository.get(submission_id)
        assert submission.user_name == approved_user.name
        assert submission.user_division == approved_user.division


class TestList:
    def test_list_in_registration_order(self, directory):
        """Test users are listed oldest first, optionally excluding one."""
        first = directory.register("Budi Santoso", "Logistics", "budi@example.com", "testpass123")
        second = directory.register("Siti Rahma", "Finance", "siti@example.com", "testpass123")

        assert [user.id for user in directory.list()] == [first, second]
        assert [user.id for user in directory.list(exclude_user_id=first)] == [second]

    def test_get_by_email(self, directory, approved_user):
        """Test looking a user up by email ignores case."""
        assert directory.get_by_email("BUDI@example.com").id == approved_user.id
        assert directory.get_by_email("nobody@example.com") is None
