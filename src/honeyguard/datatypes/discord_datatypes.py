"""
Type-safe wrapper classes for Discord identifiers.

Discord snowflakes are 64-bit integers that the gateway, the config file and
the database all hand around in slightly different shapes (int, str, or a
discord object with ``.id``). These wrappers normalise all of them so
dictionary keys and comparisons behave the same everywhere.
"""

from __future__ import annotations

from typing import Any, Union


class Snowflake:
    """
    Base wrapper for a Discord snowflake ID.

    The value is kept as a string for storage parity with the ``TEXT``
    columns and the config file, and converted with :meth:`to_int` for API
    calls.

    Example:
        >>> uid = UserID(123456789012345678)
        >>> uid.to_int()
        123456789012345678
        >>> UserID("123456789012345678") == 123456789012345678
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Initialize from a string, int, or another snowflake wrapper.

        Raises:
            ValueError: If the value is not a non-negative integer snowflake.
        """
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            if value < 0:
                raise ValueError(f"Snowflake must be non-negative: {value}")
            self._value = str(value)
        elif isinstance(value, str):
            parsed = int(value.strip())
            if parsed < 0:
                raise ValueError(f"Snowflake must be non-negative: {value}")
            self._value = str(parsed)
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_object(cls, obj: Any) -> "Snowflake":
        """Create a wrapper from any discord object exposing ``.id``."""
        return cls(obj.id)

    def to_int(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(Snowflake):
    """Discord user snowflake."""

    __slots__ = ()


class GuildID(Snowflake):
    """Discord guild snowflake."""

    __slots__ = ()


class RoleID(Snowflake):
    """Discord role snowflake."""

    __slots__ = ()


class ChannelID(Snowflake):
    """Discord channel snowflake."""

    __slots__ = ()
