from __future__ import annotations

import fcntl
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

import yaml

from honeyguard.datatypes.discord_datatypes import ChannelID, RoleID
from honeyguard.datatypes.punishment_datatypes import TriggerChannel, TriggerRole
from honeyguard.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_REASONS = {
    "role_timeout": "Temporarily timed out for acquiring honeypot role",
    "role_tempban": "Temporarily banned for acquiring honeypot role",
    "channel": "Permanently banned for posting in honeypot channel",
}


# --------------------------
# Parsing helpers
# --------------------------
def parse_role_config(raw: str | Mapping[Any, Any] | None) -> Dict[RoleID, TriggerRole]:
    """Parse trigger roles from ``"ROLE:DAYS,ROLE:DAYS"`` or a ``{role: days}`` mapping.

    Malformed entries are logged and skipped so one typo cannot stop startup.
    """
    if raw is None:
        return {}

    if isinstance(raw, Mapping):
        pairs: Iterable[tuple[Any, Any]] = raw.items()
    elif isinstance(raw, str):
        pairs = []
        for chunk in raw.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            role_part, sep, days_part = chunk.partition(":")
            if not sep:
                logger.warning("[APP CONFIGURATION] Skipping malformed honeypot role entry %r", chunk)
                continue
            pairs.append((role_part.strip(), days_part.strip()))
    else:
        logger.warning("[APP CONFIGURATION] Unsupported honeypot role config type %s", type(raw).__name__)
        return {}

    roles: Dict[RoleID, TriggerRole] = {}
    for role_value, days_value in pairs:
        try:
            role_id = RoleID(role_value)
            days = int(str(days_value).strip())
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Skipping malformed honeypot role entry %r:%r", role_value, days_value)
            continue
        if days < 0:
            logger.warning("[APP CONFIGURATION] Skipping honeypot role %s with negative duration %d", role_id, days)
            continue
        roles[role_id] = TriggerRole(role_id=role_id, duration_days=days)
    return roles


def parse_channel_config(raw: str | Iterable[Any] | None) -> Dict[ChannelID, TriggerChannel]:
    """Parse trigger channels from a comma string or a list, skipping bad ids."""
    if raw is None:
        return {}
    values = raw.split(",") if isinstance(raw, str) else list(raw)

    channels: Dict[ChannelID, TriggerChannel] = {}
    for value in values:
        if isinstance(value, str) and not value.strip():
            continue
        try:
            channel_id = ChannelID(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] Skipping malformed honeypot channel id %r", value)
            continue
        channels[channel_id] = TriggerChannel(channel_id=channel_id)
    return channels


def _optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("[APP CONFIGURATION] Ignoring non-numeric id %r", value)
        return None


@dataclass(frozen=True)
class HoneypotSettings:
    """Immutable honeypot configuration resolved once at startup."""

    trigger_roles: Mapping[RoleID, TriggerRole] = field(default_factory=dict)
    trigger_channels: Mapping[ChannelID, TriggerChannel] = field(default_factory=dict)
    log_channel_id: int | None = None
    reasons: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_REASONS))
    appeal_contact: str = "appeals@transgamers.org"
    pending_fallback_seconds: float = 0.0
    rules_gate_settle_seconds: float = 5.0
    first_message_settle_seconds: float = 10.0
    onboarding_sweep_seconds: float = 300.0
    onboarding_max_age_seconds: float = 900.0
    expiry_interval_seconds: float = 60.0
    ban_purge_seconds: int = 86400

    def is_trigger_role(self, role_id: RoleID) -> bool:
        return RoleID(role_id) in self.trigger_roles

    def is_trigger_channel(self, channel_id: ChannelID) -> bool:
        return ChannelID(channel_id) in self.trigger_channels

    def reason(self, key: str) -> str:
        return self.reasons.get(key) or DEFAULT_REASONS[key]


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    Caches the contents of ``./config/app_config.yml`` and resolves the
    honeypot section, applying environment overrides, into
    :class:`HoneypotSettings`.
    """

    def __init__(self, config_path: Path, environ: Mapping[str, str] | None = None) -> None:
        self.config_path = config_path
        self._environ = environ if environ is not None else os.environ
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        value = self._data.get(name, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the in-memory cache."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        raw = self._section("database").get("path")
        return Path(raw).resolve() if raw else Path("./data/honeyguard.db").resolve()

    @property
    def honeypot(self) -> HoneypotSettings:
        """Resolve the honeypot section, letting environment variables win."""
        section = self._section("honeypot")
        timers = section.get("timers", {})
        if not isinstance(timers, dict):
            timers = {}

        roles_raw = self._environ.get("HONEYPOT_ROLES_CONFIG") or section.get("roles")
        channels_raw = self._environ.get("HONEYPOT_CHANNELS") or section.get("channels")
        log_channel_raw = self._environ.get("LOG_CHANNEL_ID") or section.get("log_channel_id")

        reasons = dict(DEFAULT_REASONS)
        configured_reasons = section.get("reasons", {})
        if isinstance(configured_reasons, dict):
            reasons.update({k: str(v) for k, v in configured_reasons.items() if v})

        def timer(name: str, default: float) -> float:
            try:
                return float(timers.get(name, default))
            except (TypeError, ValueError):
                logger.warning("[APP CONFIGURATION] Invalid timer %s=%r, using %s", name, timers.get(name), default)
                return default

        return HoneypotSettings(
            trigger_roles=parse_role_config(roles_raw),
            trigger_channels=parse_channel_config(channels_raw),
            log_channel_id=_optional_int(log_channel_raw),
            reasons=reasons,
            appeal_contact=str(section.get("appeal_contact") or HoneypotSettings.appeal_contact),
            pending_fallback_seconds=timer("pending_fallback_seconds", 0.0),
            rules_gate_settle_seconds=timer("rules_gate_settle_seconds", 5.0),
            first_message_settle_seconds=timer("first_message_settle_seconds", 10.0),
            onboarding_sweep_seconds=timer("onboarding_sweep_seconds", 300.0),
            onboarding_max_age_seconds=timer("onboarding_max_age_seconds", 900.0),
            expiry_interval_seconds=timer("expiry_interval_seconds", 60.0),
            ban_purge_seconds=int(timer("ban_purge_seconds", 86400)),
        )
