from adboard import models
from adboard.policy import can_mutate


def _user(uid, role=models.Role.USER):
    return models.User(id=uid, email=f"u{uid}@example.com", password_hash="x", role=role)


def test_author_can_mutate_own_resource():
    for uid in (1, 2, 57):
        assert can_mutate(_user(uid), uid)


def test_other_user_cannot_mutate():
    assert not can_mutate(_user(1), 2)
    assert not can_mutate(_user(3), 1)


def test_admin_can_mutate_anything():
    admin = _user(9, role=models.Role.ADMIN)
    assert can_mutate(admin, 1)
    assert can_mutate(admin, 9)


def test_missing_actor_is_denied_without_raising():
    assert can_mutate(None, 1) is False
