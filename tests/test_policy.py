"""
Role rules shared by every mutating operation
"""
import pytest
from types import SimpleNamespace

from itasks.core import policy
from itasks.db.models import UserRole


def user(user_id, role):
    return SimpleNamespace(id=user_id, role=role)


TASK = SimpleNamespace(assignee_id=10, creator_id=20)


@pytest.mark.parametrize("actor,allowed", [
    (user(1, UserRole.ADMIN), True),
    (user(2, UserRole.TEAM_LEAD), True),
    (user(10, UserRole.TECHNICIAN), True),   # assignee
    (user(20, UserRole.TECHNICIAN), True),   # creator
    (user(30, UserRole.TECHNICIAN), False),
    (user(31, UserRole.VIEWER), False),
])
def test_can_manage(actor, allowed):
    assert policy.can_manage(TASK, actor) is allowed


@pytest.mark.parametrize("role,allowed", [
    (UserRole.ADMIN, True),
    (UserRole.TEAM_LEAD, True),
    (UserRole.TECHNICIAN, False),
    (UserRole.VIEWER, False),
])
def test_can_assign(role, allowed):
    assert policy.can_assign(user(1, role)) is allowed


def test_assignee_cannot_delete_but_creator_can():
    assert not policy.can_delete(TASK, user(10, UserRole.TECHNICIAN))
    assert policy.can_delete(TASK, user(20, UserRole.TECHNICIAN))
    assert policy.can_delete(TASK, user(2, UserRole.TEAM_LEAD))


def test_comment_deletion_is_author_or_admin():
    comment = SimpleNamespace(user_id=10)
    assert policy.can_delete_comment(comment, user(10, UserRole.TECHNICIAN))
    assert policy.can_delete_comment(comment, user(1, UserRole.ADMIN))
    assert not policy.can_delete_comment(comment, user(2, UserRole.TEAM_LEAD))


def test_viewers_are_read_only():
    assert not policy.can_create(user(1, UserRole.VIEWER))
    assert policy.can_create(user(1, UserRole.TECHNICIAN))


def test_roles_given_as_strings():
    assert policy.is_manager(user(1, "TeamLead"))


@pytest.mark.parametrize("role,administer,view_sla", [
    (UserRole.ADMIN, True, True),
    (UserRole.TEAM_LEAD, False, True),
    (UserRole.TECHNICIAN, False, False),
    (UserRole.VIEWER, False, False),
])
def test_admin_and_sla_pages(role, administer, view_sla):
    actor = user(1, role)
    assert policy.can_administer(actor) is administer
    assert policy.can_view_sla(actor) is view_sla
