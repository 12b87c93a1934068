import enum
import os
from dataclasses import dataclass, field

DEFAULT_POLL_INTERVAL_MS = 60_000  # How often to reconcile guild rosters
DEFAULT_COOLDOWN_MS = 10 * 60 * 1000  # Don't alert about the same member twice within this window
DEFAULT_DEBOUNCE_MS = 5_000  # Batch alerts that arrive within this window
DEFAULT_PERSISTENCE_FILE = "knownMembers.json"
DEFAULT_PORT = 3000


class ConfigError(ValueError):
    """Raised when the environment does not describe a runnable bot"""


class LiveJoinMode(enum.Enum):
    """How a live member join event is turned into an alert"""

    BATCHED = "batched"  # through the debounce/cooldown scheduler
    IMMEDIATE = "immediate"  # one unbatched message per join


@dataclass(frozen=True)
class Settings:
    token: str
    channel_id: int
    guild_ids: frozenset = field(default_factory=frozenset)
    poll_interval: float = DEFAULT_POLL_INTERVAL_MS / 1000
    notify_cooldown: float = DEFAULT_COOLDOWN_MS / 1000
    notify_debounce: float = DEFAULT_DEBOUNCE_MS / 1000
    persistence_file: str = DEFAULT_PERSISTENCE_FILE
    port: int = DEFAULT_PORT
    live_join_mode: LiveJoinMode = LiveJoinMode.BATCHED
    log_level: str = "INFO"

    def tracks(self, guild_id):
        """True if alerts are wanted for this guild"""
        return not self.guild_ids or int(guild_id) in self.guild_ids

    @classmethod
    def from_env(cls, environ=None):
        """Build settings from environment variables (intervals are given in ms)"""
        env = os.environ if environ is None else environ

        token = env.get("DISCORD_BOT_TOKEN", "").strip()
        if not token:
            raise ConfigError(
                "DISCORD_BOT_TOKEN environment variable not set. "
                "Please set it with: export DISCORD_BOT_TOKEN='your_token_here'"
            )

        channel_id = _int(env, "CHANNEL_ID", None)
        if channel_id is None:
            raise ConfigError("CHANNEL_ID environment variable not set (id of the notification channel)")

        guild_ids = frozenset(
            _parse_id("GUILD_ID", part) for part in env.get("GUILD_ID", "").split(",") if part.strip()
        )

        mode_name = env.get("LIVE_JOIN_MODE", LiveJoinMode.BATCHED.value).strip().lower()
        try:
            mode = LiveJoinMode(mode_name)
        except ValueError:
            choices = ", ".join(m.value for m in LiveJoinMode)
            raise ConfigError(f"LIVE_JOIN_MODE must be one of: {choices} (got {mode_name!r})") from None

        return cls(
            token=token,
            channel_id=channel_id,
            guild_ids=guild_ids,
            poll_interval=_positive_ms(env, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL_MS),
            notify_cooldown=_positive_ms(env, "NOTIFY_COOLDOWN_MS", DEFAULT_COOLDOWN_MS),
            notify_debounce=_positive_ms(env, "NOTIFY_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS),
            persistence_file=os.path.abspath(env.get("PERSISTENCE_FILE") or DEFAULT_PERSISTENCE_FILE),
            port=_int(env, "PORT", DEFAULT_PORT),
            live_join_mode=mode,
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


def _parse_id(name, raw):
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer id (got {raw!r})") from None


def _int(env, name, default):
    raw = env.get(name, "").strip()
    if not raw:
        return default
    return _parse_id(name, raw)


def _positive_ms(env, name, default_ms):
    """Read a millisecond setting and return it in seconds"""
    value = _int(env, name, default_ms)
    if value <= 0:
        raise ConfigError(f"{name} must be a positive number of milliseconds (got {value})")
    return value / 1000
