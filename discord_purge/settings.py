"""
Configuration constants and pacing policy for discord-purge.
"""
import json
import os
from typing import Dict, Optional

# API
DISCORD_API_BASE = "https://discord.com/api/v9"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
REQUEST_TIMEOUT = 30

# Rate limiting (seconds)
MAX_RATE_LIMIT_RETRIES = 5
DEFAULT_RETRY_AFTER = 5.0
RATE_LIMIT_BUFFER = 1.0
RATE_LIMIT_FLOOR = 2.0
# Joined private archive listing trips 429 in tight loops below this
STRICT_ROUTE_FLOOR = 6.0
STRICT_ROUTES = ("/users/@me/threads/archived/private",)

# Pagination
GUILD_PAGE_SIZE = 200
MESSAGE_PAGE_SIZE = 100
THREAD_PAGE_SIZE = 100
MAX_SEARCH_INDEX_WAITS = 40

# Files
LOG_FILE = "discord_purge.log"
DATA_PACKAGE_INDEX = os.path.join("messages", "index.json")

# Environment
TOKEN_ENV_VAR = "DISCORD_TOKEN"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class Pacing:
    """Fixed delays (seconds) inserted between successive API operations.

    One value per kind of operation. These are a courtesy to the API and
    apply whether or not a 429 was seen; 429 handling lives in the client.
    """

    DEFAULTS = {
        'search': 0.35,
        'delete': 0.35,
        'reaction': 0.35,
        'batch': 0.35,
        'thread_discovery': 0.35,
        'thread_archive': 0.35,
        'error_backoff': 1.25,
        'index_wait': 3.0,
        'relationship': 0.5,
    }

    def __init__(self, **overrides: float):
        unknown = set(overrides) - set(self.DEFAULTS)
        if unknown:
            raise TypeError(f"Unknown pacing keys: {', '.join(sorted(unknown))}")

        values = dict(self.DEFAULTS)
        values.update(overrides)
        for key, value in values.items():
            setattr(self, key, float(value))

    @classmethod
    def none(cls) -> 'Pacing':
        """Pacing with every delay set to zero."""
        return cls(**{key: 0 for key in cls.DEFAULTS})

    def as_dict(self) -> Dict[str, float]:
        return {key: getattr(self, key) for key in self.DEFAULTS}

    def __repr__(self):
        values = ', '.join(f"{k}={v}" for k, v in self.as_dict().items())
        return f"Pacing({values})"


# Config file keys -> Pacing attributes. Both "delete_delay" and "delete"
# spellings are accepted.
_CONFIG_ALIASES = {f"{key}_delay": key for key in Pacing.DEFAULTS}


def load_settings(config_file: Optional[str]) -> Pacing:
    """Build a Pacing from a JSON config file.

    The file holds a ``settings`` object, e.g.::

        {"settings": {"search_delay": 1, "delete_delay": 0.5}}

    Unknown keys are ignored so config files can carry other options.

    Raises:
        ValueError: if the file is not valid JSON or has the wrong shape.
    """
    if not config_file:
        return Pacing()

    with open(config_file, 'r', encoding='utf-8') as f:
        try:
            config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_file}: {e}") from e

    if not isinstance(config, dict):
        raise ValueError(f"{config_file}: expected a JSON object")

    settings = config.get('settings', {})
    if not isinstance(settings, dict):
        raise ValueError(f"{config_file}: 'settings' must be an object")

    overrides = {}
    for key, value in settings.items():
        name = _CONFIG_ALIASES.get(key, key)
        if name not in Pacing.DEFAULTS:
            continue
        try:
            overrides[name] = max(0.0, float(value))
        except (TypeError, ValueError) as e:
            raise ValueError(f"{config_file}: '{key}' must be a number") from e

    return Pacing(**overrides)
