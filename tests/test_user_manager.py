import pytest

from utils.user_manager import UserAlreadyExistsError, UserNotFoundError


def test_email_is_stored_lowercase(user_manager):
    user = user_manager.create_user(
        email="  Mixed@Example.COM ",
        password="secret123",
        role="student",
        full_name="Mia Mixed",
        age=16,
    )

    assert user.email == "mixed@example.com"
    assert user_manager.get_user_by_email("MIXED@example.com").user_id == user.user_id


def test_duplicate_email_is_rejected(user_manager, student):
    with pytest.raises(UserAlreadyExistsError, match="already registered"):
        user_manager.create_user(
            email="STUDENT@example.com",
            password="secret123",
            role="student",
            full_name="Copy Cat",
        )


def test_authenticate(user_manager, teacher):
    assert user_manager.authenticate("teacher@example.com", "secret123").user_id == teacher.user_id
    assert user_manager.authenticate("teacher@example.com", "wrong-password") is None
    assert user_manager.authenticate("nobody@example.com", "secret123") is None


def test_password_is_hashed(user_manager, teacher):
    assert teacher.password_hash != "secret123"
    assert user_manager.verify_password("secret123", teacher.password_hash)
    assert not user_manager.verify_password("secret123", "not-a-hash")


def test_require_user(user_manager, teacher):
    assert user_manager.require_user(teacher.user_id).role == "teacher"
    with pytest.raises(UserNotFoundError):
        user_manager.require_user("missing")
