"""
Channel and thread discovery for a guild.

There is no endpoint for "every message I reacted to", and guild search can
miss old content, so both the reaction sweep and the deep scan need the
complete list of places a guild keeps messages: channels, active threads,
and the three kinds of archived thread listing per parent channel.
"""
import logging
import time
from typing import Dict, List, Optional

import requests

from discord_purge import client as api
from discord_purge.client import DiscordClient
from discord_purge.exceptions import PurgeError
from discord_purge.settings import Pacing

logger = logging.getLogger(__name__)

# Channels that hold messages directly
MESSAGE_CHANNEL_TYPES = frozenset([
    api.CHANNEL_GUILD_TEXT,
    api.CHANNEL_GUILD_NEWS,
    api.CHANNEL_GUILD_VOICE,
    api.CHANNEL_GUILD_STAGE_VOICE,
    api.CHANNEL_NEWS_THREAD,
    api.CHANNEL_PUBLIC_THREAD,
    api.CHANNEL_PRIVATE_THREAD,
])

# Channels that can have threads (forum/media only hold posts)
THREAD_PARENT_TYPES = frozenset([
    api.CHANNEL_GUILD_TEXT,
    api.CHANNEL_GUILD_NEWS,
    api.CHANNEL_GUILD_FORUM,
    api.CHANNEL_GUILD_MEDIA,
])

# Statuses that just mean "nothing for you here"
ARCHIVE_STOP_STATUSES = {
    'public': (400, 403),
    'private': (400, 403),
    'joined': (400, 403, 404),
}


class ChannelDiscovery:
    """Finds every channel and thread in a guild that can hold messages."""

    def __init__(self, client: DiscordClient, pacing: Optional[Pacing] = None):
        self.client = client
        self.pacing = pacing or client.pacing

    def discover(self, guild_id: str) -> List[str]:
        """Return unique channel/thread IDs in discovery order.

        A listing that fails is logged and skipped; whatever was found before
        and after it is still returned.
        """
        found: Dict[str, None] = {}

        def add(channel_id):
            if channel_id and channel_id not in found:
                found[channel_id] = None

        try:
            channels = self.client.get_guild_channels(guild_id)
        except (PurgeError, requests.exceptions.RequestException) as e:
            logger.warning(f"Could not list channels of guild {guild_id}: {e}")
            return []

        parent_ids = []
        for channel in channels:
            channel_type = channel.get('type')
            if channel_type in MESSAGE_CHANNEL_TYPES:
                add(channel['id'])
            if channel_type in THREAD_PARENT_TYPES:
                parent_ids.append(channel['id'])

        try:
            for thread in self.client.get_active_guild_threads(guild_id):
                add(thread['id'])
        except (PurgeError, requests.exceptions.RequestException) as e:
            logger.warning(f"Could not list active threads of guild {guild_id}: {e}")

        for parent_id in parent_ids:
            for thread in self.archived_threads(parent_id, 'public'):
                add(thread['id'])
            time.sleep(self.pacing.thread_archive)

            for thread in self.archived_threads(parent_id, 'private'):
                add(thread['id'])
            time.sleep(self.pacing.thread_archive)

            for thread in self.archived_threads(parent_id, 'joined'):
                add(thread['id'])
            time.sleep(self.pacing.thread_discovery)

        logger.debug(f"Discovered {len(found)} channels/threads in guild {guild_id}")
        return list(found)

    def archived_threads(self, channel_id: str, kind: str) -> List[Dict]:
        """Collect every archived thread of one kind under a parent channel.

        Pages backwards using the archive timestamp of each page's last
        thread. Errors end the listing with what was collected so far.
        """
        threads: List[Dict] = []
        before = None

        while True:
            try:
                body, status = self.client.list_archived_threads(channel_id, kind, before)
            except (PurgeError, requests.exceptions.RequestException) as e:
                logger.debug(f"Archived {kind} threads of {channel_id}: {e}")
                break

            if status in ARCHIVE_STOP_STATUSES[kind]:
                break
            if status != 200 or not isinstance(body, dict):
                logger.debug(f"Archived {kind} threads of {channel_id}: HTTP {status}")
                break

            page = body.get('threads') or []
            threads.extend(page)

            if not body.get('has_more') or not page:
                break

            before = (page[-1].get('thread_metadata') or {}).get('archive_timestamp')
            if not before:
                break

            time.sleep(self.pacing.batch)

        return threads
