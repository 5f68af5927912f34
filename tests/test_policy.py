"""Unit tests for auth/policy.py -- role/action access decisions."""

import pytest

from auth.policy import Action, Role, can_perform

_USER_ACTIONS = {Action.view_profile, Action.edit_profile, Action.submit_inquiry}


@pytest.mark.parametrize("action", list(Action))
def test_admin_can_do_everything(action):
    assert can_perform(Role.admin, action)


@pytest.mark.parametrize("action", list(Action))
def test_user_limited_to_own_profile_and_inquiries(action):
    assert can_perform(Role.user, action) is (action in _USER_ACTIONS)


def test_plain_string_roles_are_accepted():
    assert can_perform("admin", Action.manage_vehicles)
    assert not can_perform("user", Action.manage_vehicles)


def test_unknown_role_is_denied():
    assert not can_perform("superuser", Action.view_profile)
