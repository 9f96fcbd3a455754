"""
Purge orchestration.

Runs the phases in order:

    1. Server messages (search, deep scan when search finds nothing)
    2a. Open DMs and group DMs
    2b. Hidden DMs re-opened through relationships
    2c. DMs listed in a data package (optional)
    3a. Reactions in every server channel and thread
    3b. Reactions in every DM handled above

A failure in one server or DM is reported and the run moves on.
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

import requests

from discord_purge import data_package
from discord_purge.client import CHANNEL_GROUP_DM, RELATIONSHIP_LABELS, DiscordClient
from discord_purge.discovery import ChannelDiscovery
from discord_purge.exceptions import PurgeError
from discord_purge.history import delete_channel_history
from discord_purge.reactions import remove_reactions_from_channel
from discord_purge.search import SearchDeleter
from discord_purge.settings import Pacing

logger = logging.getLogger(__name__)

CONTAINER_ERRORS = (PurgeError, requests.exceptions.RequestException)


def display_guild_name(guild: Dict) -> str:
    return guild.get('name') or guild['id']


def describe_channel(channel: Dict) -> str:
    """Human-readable label for a DM or group DM."""
    recipients = channel.get('recipients') or []
    if not recipients:
        return f"Channel {channel['id']}"
    if len(recipients) == 1 and channel.get('type') != CHANNEL_GROUP_DM:
        user = recipients[0]
        discriminator = user.get('discriminator')
        if discriminator and discriminator != '0':
            return f"{user.get('username')}#{discriminator}"
        return user.get('username') or user.get('id', 'Unknown')
    names = ', '.join(user.get('username') or user.get('id', '?') for user in recipients)
    return f"Group: {names}"


class PurgeOptions:
    """Servers and DM channels the user chose to leave untouched."""

    def __init__(self, excluded_guild_ids: Optional[Iterable[str]] = None,
                 excluded_dm_channel_ids: Optional[Iterable[str]] = None):
        self.excluded_guild_ids = frozenset(excluded_guild_ids or ())
        self.excluded_dm_channel_ids = frozenset(excluded_dm_channel_ids or ())

    def is_guild_excluded(self, guild_id: str) -> bool:
        return guild_id in self.excluded_guild_ids

    def is_dm_excluded(self, channel_id: str) -> bool:
        return channel_id in self.excluded_dm_channel_ids


class ServerStat:
    """Per-server counts."""

    def __init__(self, guild_id: str, guild_name: str, messages: int = 0, reactions: int = 0):
        self.guild_id = guild_id
        self.guild_name = guild_name
        self.messages = messages
        self.reactions = reactions

    def __repr__(self):
        return f"ServerStat({self.guild_name!r}, messages={self.messages}, reactions={self.reactions})"


class PurgeStats:
    """Totals for a whole run."""

    def __init__(self):
        self.total_messages_deleted = 0
        self.total_reactions_removed = 0
        self.total_dm_messages_deleted = 0
        self.dm_channels_processed = 0
        self.server_stats: List[ServerStat] = []
        self.errors: List[str] = []
        self.elapsed = timedelta(0)

    @property
    def servers_processed(self) -> int:
        return len(self.server_stats)

    def server(self, guild_id: str) -> Optional[ServerStat]:
        for stat in self.server_stats:
            if stat.guild_id == guild_id:
                return stat
        return None


class Purger:
    """Deletes everything the account has posted and reacted with."""

    def __init__(self, client: DiscordClient, pacing: Optional[Pacing] = None,
                 searcher: Optional[SearchDeleter] = None,
                 discovery: Optional[ChannelDiscovery] = None,
                 load_channel_ids: Optional[Callable[[str], List[str]]] = None):
        self.client = client
        self.pacing = pacing or client.pacing
        self.discovery = discovery or ChannelDiscovery(client, self.pacing)
        self.searcher = searcher or SearchDeleter(client, self.pacing, self.discovery)
        self.load_channel_ids = load_channel_ids or data_package.load_channel_ids

    def run(self, options: Optional[PurgeOptions] = None,
            data_package_path: Optional[str] = None) -> PurgeStats:
        """Run every phase and return the totals."""
        options = options or PurgeOptions()
        stats = PurgeStats()
        start_time = datetime.now()

        # DM channel IDs already handled, in the order they were found
        processed: Dict[str, None] = {}

        guilds = self.purge_guild_messages(options, stats)
        self.purge_open_dms(options, processed, stats)
        self.purge_hidden_dms(options, processed, stats)

        if data_package_path:
            self.purge_data_package_dms(data_package_path, options, processed, stats)
        else:
            logger.info("Phase 2c: Discord data package (skipped - not provided)")

        self.sweep_guild_reactions(guilds, stats)
        self.sweep_dm_reactions(processed, stats)

        stats.dm_channels_processed = len(processed)
        stats.elapsed = datetime.now() - start_time
        return stats

    # -- Messages -----------------------------------------------------------

    def purge_guild_messages(self, options: PurgeOptions, stats: PurgeStats) -> List[Dict]:
        """Phase 1. Returns the servers that were processed."""
        logger.info("Phase 1: Deleting messages from servers...")

        try:
            guilds = self.client.get_all_guilds()
        except CONTAINER_ERRORS as e:
            self._report(stats, f"Error fetching servers: {e}")
            return []

        selected = [g for g in guilds if not options.is_guild_excluded(g['id'])]
        logger.info(f"Found {len(guilds)} servers")
        if len(selected) < len(guilds):
            logger.info(f"Excluding {len(guilds) - len(selected)} servers selected by you")

        for i, guild in enumerate(selected, 1):
            name = display_guild_name(guild)
            logger.info(f"[{i}/{len(selected)}] Searching server: {name}")

            try:
                count = self.searcher.delete_guild_messages(guild['id']).deleted
            except CONTAINER_ERRORS as e:
                count = getattr(e, 'deleted', 0)
                self._report(stats, f"Server {name}: {e}")

            logger.info(f"Deleted {count} messages" if count else "No messages found")
            stats.total_messages_deleted += count
            stats.server_stats.append(ServerStat(guild['id'], name, messages=count))

        return selected

    def purge_open_dms(self, options: PurgeOptions, processed: Dict[str, None],
                       stats: PurgeStats):
        """Phase 2a: DMs and group DMs currently in the DM list."""
        logger.info("Phase 2a: Deleting messages from open DM channels...")

        try:
            channels = self.client.get_dm_channels()
        except CONTAINER_ERRORS as e:
            self._report(stats, f"Error fetching DM channels: {e}")
            return

        selected = [c for c in channels if not options.is_dm_excluded(c['id'])]
        logger.info(f"Found {len(channels)} open DM channels")
        if len(selected) < len(channels):
            logger.info(f"Excluding {len(channels) - len(selected)} DM channels selected by you")

        for i, channel in enumerate(selected, 1):
            processed[channel['id']] = None
            logger.info(f"[{i}/{len(selected)}] Processing DM: {describe_channel(channel)}")
            self._add_dm_count(stats, self._purge_dm(channel['id'], stats))

    def purge_hidden_dms(self, options: PurgeOptions, processed: Dict[str, None],
                         stats: PurgeStats):
        """Phase 2b: re-open DMs with friends, blocked users and pending requests."""
        logger.info("Phase 2b: Discovering hidden DMs via relationships...")

        try:
            relationships = self.client.get_relationships()
        except CONTAINER_ERRORS as e:
            self._report(stats, f"Error fetching relationships: {e}")
            return

        logger.info(f"Found {len(relationships)} relationships")

        discovered = 0
        excluded = 0
        for rel in relationships:
            user = rel.get('user') or {}
            try:
                channel = self.client.open_dm_channel(user.get('id') or rel.get('id'))
            except CONTAINER_ERRORS as e:
                logger.debug(f"Could not open DM with {user.get('username')}: {e}")
                continue

            channel_id = channel['id']
            if channel_id in processed:
                continue
            if options.is_dm_excluded(channel_id):
                excluded += 1
                continue

            discovered += 1
            processed[channel_id] = None
            label = RELATIONSHIP_LABELS.get(rel.get('type'), 'related')
            logger.info(f"Found hidden DM with {user.get('username')} ({label})")

            self._add_dm_count(stats, self._purge_dm(channel_id, stats))
            time.sleep(self.pacing.relationship)

        if not discovered:
            logger.info("No additional hidden DMs found (all already processed)")
        if excluded:
            logger.info(f"Skipped {excluded} hidden DM channels from your exclusion list")

    def purge_data_package_dms(self, package_path: str, options: PurgeOptions,
                               processed: Dict[str, None], stats: PurgeStats):
        """Phase 2c: channels listed in a Discord data package."""
        logger.info(f"Phase 2c: Processing DMs from data package {package_path}")

        try:
            channel_ids = self.load_channel_ids(package_path)
        except PurgeError as e:
            self._report(stats, f"Error loading data package: {e}")
            return

        logger.info(f"Found {len(channel_ids)} channels in data package")

        new_channels = 0
        for channel_id in channel_ids:
            if options.is_dm_excluded(channel_id) or channel_id in processed:
                continue
            processed[channel_id] = None
            new_channels += 1

            logger.info(f"Processing data package channel: {channel_id}")
            try:
                count = self.searcher.delete_dm_messages(channel_id).deleted
            except CONTAINER_ERRORS as e:
                logger.debug(f"Search failed for {channel_id} ({e}), scanning history")
                count = self._history_fallback(channel_id, stats)
            self._add_dm_count(stats, count)

        if not new_channels:
            logger.info("No additional channels found beyond what was already processed")

    def _purge_dm(self, channel_id: str, stats: PurgeStats) -> int:
        try:
            return self.searcher.delete_dm_messages(channel_id).deleted
        except CONTAINER_ERRORS as e:
            self._report(stats, f"DM {channel_id}: {e}")
            return getattr(e, 'deleted', 0)

    def _history_fallback(self, channel_id: str, stats: PurgeStats) -> int:
        try:
            return delete_channel_history(self.client, channel_id, self.pacing)
        except CONTAINER_ERRORS as e:
            self._report(stats, f"Channel {channel_id}: {e}")
            return getattr(e, 'deleted', 0)

    @staticmethod
    def _add_dm_count(stats: PurgeStats, count: int):
        if count:
            logger.info(f"Deleted {count} messages")
        stats.total_dm_messages_deleted += count
        stats.total_messages_deleted += count

    # -- Reactions ----------------------------------------------------------

    def sweep_guild_reactions(self, guilds: List[Dict], stats: PurgeStats):
        """Phase 3a: remove our reactions from every channel of every server."""
        logger.info("Phase 3: Removing reactions you placed on other people's messages...")

        for i, guild in enumerate(guilds, 1):
            name = display_guild_name(guild)
            logger.info(f"[{i}/{len(guilds)}] Scanning server for reactions: {name}")

            channel_ids = self.discovery.discover(guild['id'])
            logger.info(f"Found {len(channel_ids)} channels/threads to scan")

            guild_reactions = 0
            for j, channel_id in enumerate(channel_ids, 1):
                removed = remove_reactions_from_channel(self.client, channel_id, self.pacing)
                guild_reactions += removed
                if removed:
                    logger.info(f"Removed {removed} reactions from channel {j}/{len(channel_ids)}")

            stat = stats.server(guild['id'])
            if stat is None:
                stat = ServerStat(guild['id'], name)
                stats.server_stats.append(stat)
            stat.reactions = guild_reactions
            stats.total_reactions_removed += guild_reactions

    def sweep_dm_reactions(self, processed: Dict[str, None], stats: PurgeStats):
        """Phase 3b: every DM handled in phase 2.

        Exclusions are not checked again here; excluded DMs never make it
        into ``processed``.
        """
        logger.info("Scanning DM channels for reactions...")

        dm_reactions = 0
        for channel_id in processed:
            removed = remove_reactions_from_channel(self.client, channel_id, self.pacing)
            dm_reactions += removed
            if removed:
                logger.info(f"Removed {removed} reactions from DM {channel_id}")

        if not dm_reactions:
            logger.info("No DM reactions found")
        stats.total_reactions_removed += dm_reactions

    @staticmethod
    def _report(stats: PurgeStats, message: str):
        logger.error(message)
        stats.errors.append(message)
