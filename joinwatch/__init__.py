"""Join watch - posts an alert when new members join the tracked guilds.

New members are found two ways: a periodic roster poll that is reconciled
against a persisted set of known member ids, and the gateway's live member
join event. Alerts are deduplicated per member and batched before being sent
to a single notification channel.
"""

from joinwatch.config import ConfigError, LiveJoinMode, Settings
from joinwatch.service import JoinWatchService
from joinwatch.state import KnownMembers

__version__ = "1.0.0"

__all__ = [
    "ConfigError",
    "JoinWatchService",
    "KnownMembers",
    "LiveJoinMode",
    "Settings",
]
