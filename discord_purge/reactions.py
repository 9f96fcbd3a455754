"""
Reaction removal.

Reactions cannot be searched by who placed them, so every message in a
channel has to be looked at.
"""
import logging
import time
from typing import Dict, Optional
from urllib.parse import quote

import requests

from discord_purge.client import DiscordClient
from discord_purge.exceptions import PurgeError
from discord_purge.history import iter_message_pages
from discord_purge.settings import Pacing

logger = logging.getLogger(__name__)


def format_emoji(emoji: Dict) -> str:
    """Return the emoji as it goes in a reaction URL.

    Custom emoji are ``name:id`` (both ASCII, left as is); unicode emoji are
    percent-encoded.
    """
    emoji_id = emoji.get('id')
    name = emoji.get('name') or ''
    if emoji_id:
        return f"{name}:{emoji_id}"
    return quote(name, safe='')


def remove_reactions_from_channel(client: DiscordClient, channel_id: str,
                                  pacing: Optional[Pacing] = None) -> int:
    """Remove every reaction we placed in a channel.

    Returns:
        Number of reactions removed (already-removed ones included).
    """
    pacing = pacing or client.pacing
    total_removed = 0

    try:
        for page in iter_message_pages(client, channel_id, pacing, tolerated=(403, 404)):
            for msg in page:
                for reaction in msg.get('reactions') or []:
                    if not reaction.get('me'):
                        continue

                    emoji = format_emoji(reaction.get('emoji') or {})
                    outcome, detail = client.remove_reaction(channel_id, msg['id'], emoji)
                    if outcome in ('OK', 'GHOST'):
                        total_removed += 1
                    else:
                        logger.debug(f"Could not remove reaction {emoji} on {msg['id']}: {detail}")
                    time.sleep(pacing.reaction)
    except (PurgeError, requests.exceptions.RequestException) as e:
        logger.debug(f"Reaction sweep of {channel_id} stopped: {e}")

    return total_removed
