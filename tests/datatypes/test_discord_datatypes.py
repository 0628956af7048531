from types import SimpleNamespace

import pytest

from honeyguard.datatypes.discord_datatypes import (
    ChannelID,
    GuildID,
    RoleID,
    UserID,
)
from honeyguard.datatypes.event_datatypes import RoleChanged


class DummyObj:
    def __init__(self, id_val=None):
        self.id = id_val


def test_userid_from_int_and_str_and_equality_and_hash():
    u1 = UserID(12345)
    assert u1.to_int() == 12345
    assert str(u1) == "12345"

    u2 = UserID(" 12345 ")
    assert u1 == u2

    u3 = UserID(UserID(67890))
    assert u3.to_int() == 67890

    u4 = UserID.from_object(DummyObj(id_val=111))
    assert isinstance(u4, UserID)
    assert u4.to_int() == 111

    # equality with raw types
    assert u4 == 111
    assert u4 == "111"

    # hashing and set membership
    s = {u1, u2, u3, u4}
    assert len(s) == 3


def test_different_snowflake_types_are_not_equal():
    assert UserID(1) != GuildID(1)
    assert RoleID(1) != ChannelID(1)
    assert len({UserID(1), GuildID(1)}) == 2


@pytest.mark.parametrize("value", [-1, "-5", True, [], None, "abc", 1.5])
def test_snowflake_invalid(value):
    with pytest.raises(ValueError):
        UserID(value)  # type: ignore


def test_repr_names_the_type():
    assert repr(RoleID(42)) == "RoleID('42')"


def test_role_changed_from_members():
    before = SimpleNamespace(roles=[SimpleNamespace(id=1), SimpleNamespace(id=2)])
    after = SimpleNamespace(roles=[SimpleNamespace(id=2), SimpleNamespace(id=3)])

    event = RoleChanged.from_members(before, after)  # type: ignore

    assert event.member is after
    assert event.added == frozenset({RoleID(3)})
    assert event.removed == frozenset({RoleID(1)})
