"""
Tests de la résolution des permissions
"""
import pytest

from botcore.models import Invocation, Permission
from botcore.permissions import authorize, denial_message, parse_permission


def _invocation(mod=False, owner=False):
    return Invocation(
        channel_id="c",
        user_id="u",
        username="alice",
        is_moderator=mod,
        is_owner=owner,
        command_name="x",
        args=(),
        raw_message="!x",
    )


class TestAuthorize:
    @pytest.mark.parametrize(
        "mod,owner,required,expected",
        [
            (False, False, Permission.EVERYONE, True),
            (False, False, Permission.MODERATOR, False),
            (True, False, Permission.MODERATOR, True),
            (False, True, Permission.MODERATOR, True),
            (True, False, Permission.OWNER, False),
            (False, True, Permission.OWNER, True),
        ],
    )
    def test_matrix(self, mod, owner, required, expected):
        assert authorize(_invocation(mod, owner), required) is expected


class TestParsePermission:
    def test_aliases(self):
        assert parse_permission("mod") is Permission.MODERATOR
        assert parse_permission(" MODO ") is Permission.MODERATOR
        assert parse_permission("broadcaster") is Permission.OWNER
        assert parse_permission("tous") is Permission.EVERYONE

    def test_unknown(self):
        assert parse_permission("vip") is None


def test_denial_messages_differ():
    assert "propriétaire" in denial_message(Permission.OWNER)
    assert "modérateurs" in denial_message(Permission.MODERATOR)
