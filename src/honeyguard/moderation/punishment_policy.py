"""Mapping from trigger configuration to punishment kind."""

from honeyguard.datatypes.punishment_datatypes import MAX_TIMEOUT_DAYS, PunishmentKind


def classify(duration_days: int) -> PunishmentKind:
    """
    Pick the punishment for a trigger role of ``duration_days``.

    Durations the platform can express as a timeout (up to 28 days) become a
    timeout; anything longer becomes a temporary ban.

    Raises:
        ValueError: If ``duration_days`` is negative.
    """
    if duration_days < 0:
        raise ValueError(f"duration_days must be non-negative, got {duration_days}")
    if duration_days <= MAX_TIMEOUT_DAYS:
        return PunishmentKind.TIMEOUT
    return PunishmentKind.TEMPORARY_BAN


def classify_channel() -> PunishmentKind:
    """Messages in a trigger channel are always a permanent ban."""
    return PunishmentKind.PERMANENT_BAN
