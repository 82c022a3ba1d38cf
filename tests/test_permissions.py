"""
tests/test_permissions.py
=========================

Unit tests for the role → capability table.
"""

import pytest

from dispensary.errors import PermissionDenied
from dispensary.permissions import Actor, Capability, Role, capabilities, has_capability, require


def test_admin_has_everything():
    assert capabilities(Role.ADMIN) == frozenset(Capability)


def test_pharmacist_capabilities():
    assert has_capability("pharmacist", Capability.MANAGE_INVENTORY)
    assert has_capability("pharmacist", Capability.SEND_NOTIFICATIONS)
    assert not has_capability("pharmacist", Capability.DELETE_USERS)
    assert not has_capability("pharmacist", Capability.EDIT_SETTINGS)


def test_unknown_role_falls_back_to_technician():
    assert Role.parse("superuser") is Role.TECHNICIAN
    assert Role.parse(None) is Role.TECHNICIAN
    assert Actor("u1", "ADMIN").role is Role.ADMIN
    assert capabilities("nobody") == frozenset()


def test_require_raises_for_missing_capability():
    tech = Actor("u1", Role.TECHNICIAN)
    with pytest.raises(PermissionDenied):
        require(tech, Capability.SEND_NOTIFICATIONS)
    require(Actor("u2", Role.PHARMACIST), Capability.SEND_NOTIFICATIONS)
