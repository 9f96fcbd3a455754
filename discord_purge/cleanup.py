"""
Account cleanup after a purge: drop friends and leave servers.
"""
import logging
import time
from typing import Optional

from discord_purge.client import RELATIONSHIP_FRIEND, DiscordClient
from discord_purge.settings import Pacing

logger = logging.getLogger(__name__)


def remove_all_friends(client: DiscordClient, pacing: Optional[Pacing] = None) -> int:
    """Remove every friend. Blocks and pending requests are left alone.

    Returns:
        Number of friends removed.
    """
    pacing = pacing or client.pacing
    removed = 0

    for rel in client.get_relationships():
        if rel.get('type') != RELATIONSHIP_FRIEND:
            continue

        user = rel.get('user') or {}
        name = user.get('username') or rel.get('id')
        outcome, detail = client.remove_friend(user.get('id') or rel.get('id'))
        if outcome == 'OK':
            removed += 1
            logger.info(f"Removed friend: {name}")
        else:
            logger.warning(f"Failed to remove friend {name}: {detail or outcome}")
        time.sleep(pacing.relationship)

    return removed


def leave_all_guilds(client: DiscordClient, pacing: Optional[Pacing] = None) -> int:
    """Leave every server the user is a member of.

    Returns:
        Number of servers left.
    """
    pacing = pacing or client.pacing
    left = 0

    for guild in client.get_all_guilds():
        name = guild.get('name') or guild['id']
        outcome, detail = client.leave_guild(guild['id'])
        if outcome == 'OK':
            left += 1
            logger.info(f"Left server: {name}")
        else:
            logger.warning(f"Failed to leave server {name}: {detail or outcome}")
        time.sleep(pacing.relationship)

    return left
