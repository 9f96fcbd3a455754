"""
Search-driven message deletion.

Uses max_id as a sliding cursor to walk backward through time instead of the
search offset, which Discord caps at 9,975. Each page is searched newest
first, every hit is deleted, and the cursor moves to just before the oldest
hit on the page.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import requests

from discord_purge import settings
from discord_purge.client import DiscordClient
from discord_purge.discovery import ChannelDiscovery
from discord_purge.exceptions import (
    HistoryFetchError, PurgeError, RateLimitExceeded, SearchFailed, SearchIndexNotReady
)
from discord_purge.history import delete_channel_history
from discord_purge.settings import Pacing
from discord_purge.snowflake import older_snowflake, previous_snowflake

logger = logging.getLogger(__name__)

SearchCall = Callable[[Optional[str]], Tuple[Any, int]]


class DeletionResult:
    """Counts for one search walk."""

    def __init__(self):
        self.deleted = 0
        self.ghosts = 0     # search hits that were already gone (404)
        self.skipped = 0    # 403 / 400, not retried
        self.failed = 0
        self.pages = 0
        self.max_id: Optional[str] = None
        self.fell_back = False
        self.deep_scanned = False

    def __repr__(self):
        return (f"DeletionResult(deleted={self.deleted}, ghosts={self.ghosts}, "
                f"skipped={self.skipped}, failed={self.failed}, pages={self.pages})")


class SearchDeleter:
    """Deletes our messages from a guild or DM using the search API."""

    def __init__(self, client: DiscordClient, pacing: Optional[Pacing] = None,
                 discovery: Optional[ChannelDiscovery] = None):
        self.client = client
        self.pacing = pacing or client.pacing
        self.discovery = discovery or ChannelDiscovery(client, self.pacing)

    def delete_guild_messages(self, guild_id: str) -> DeletionResult:
        """Delete our messages across a whole guild.

        Covers text channels, threads, forum posts, announcements and voice
        text chat. When search finds nothing to delete, every channel is
        walked as well, since the index can miss old content.

        Raises:
            SearchIndexNotReady: the index never finished building.
            SearchFailed: search answered with an unexpected status.
        """
        result = DeletionResult()
        status = self._walk(
            lambda max_id: self.client.search_guild_messages(guild_id, max_id),
            None, result
        )

        if status == 403:
            logger.warning(f"No permission to search guild {guild_id}, skipping")
            return result
        if status is not None:
            raise SearchFailed(f"Search returned HTTP {status}", deleted=result.deleted)

        if result.deleted == 0:
            result.deep_scanned = True
            result.deleted += self.deep_scan(guild_id)

        return result

    def delete_dm_messages(self, channel_id: str) -> DeletionResult:
        """Delete our messages from a DM or group DM.

        If search is refused or fails, the whole history is walked instead.
        """
        result = DeletionResult()
        status = self._walk(
            lambda max_id: self.client.search_channel_messages(channel_id, max_id),
            channel_id, result
        )
        if status is None:
            return result

        result.fell_back = True
        logger.info(f"Search unavailable for {channel_id} (HTTP {status}), scanning full history")
        try:
            result.deleted += delete_channel_history(self.client, channel_id, self.pacing)
        except HistoryFetchError as e:
            e.deleted += result.deleted
            if status in (400, 403, 404):
                raise
            raise SearchFailed(
                f"Search returned HTTP {status} and fallback failed: {e}", deleted=e.deleted
            ) from e

        return result

    def deep_scan(self, guild_id: str) -> int:
        """Walk the history of every channel and thread in a guild."""
        channel_ids = self.discovery.discover(guild_id)
        if not channel_ids:
            return 0

        logger.info(f"Running exhaustive channel scan ({len(channel_ids)} channels/threads)...")

        total_deleted = 0
        for i, channel_id in enumerate(channel_ids, 1):
            try:
                count = delete_channel_history(self.client, channel_id, self.pacing)
            except (PurgeError, requests.exceptions.RequestException) as e:
                logger.debug(f"Deep scan of {channel_id} failed: {e}")
                total_deleted += getattr(e, 'deleted', 0)
                continue

            total_deleted += count
            if count:
                logger.info(f"Deleted {count} messages in deep scan channel {i}/{len(channel_ids)}")
            time.sleep(self.pacing.batch)

        if total_deleted:
            logger.info(f"Deep scan recovered {total_deleted} additional messages")
        return total_deleted

    def _walk(self, search: SearchCall, channel_id: Optional[str],
              result: DeletionResult) -> Optional[int]:
        """Search and delete until the results run out.

        Returns:
            None when the walk ran to completion, otherwise the HTTP status
            that stopped it.
        """
        index_waits = 0
        skipped_ids: Set[str] = set()

        while True:
            try:
                body, status = search(result.max_id)
            except (RateLimitExceeded, requests.exceptions.RequestException) as e:
                raise SearchFailed(f"Search request failed: {e}", deleted=result.deleted) from e

            if status == 202 or (status == 200 and isinstance(body, dict) and body.get('retry')):
                index_waits += 1
                if index_waits >= settings.MAX_SEARCH_INDEX_WAITS:
                    raise SearchIndexNotReady(
                        f"Search index not ready after {index_waits} retries",
                        deleted=result.deleted
                    )
                logger.info(f"Search index building, waiting ({index_waits}/{settings.MAX_SEARCH_INDEX_WAITS})...")
                time.sleep(self.pacing.index_wait)
                continue
            index_waits = 0

            if status != 200:
                return status
            if not isinstance(body, dict):
                raise SearchFailed("Unexpected search response", deleted=result.deleted)

            groups = body.get('messages') or []
            if not body.get('total_results') or not groups:
                return None

            result.pages += 1
            logger.info(f"{body['total_results']} messages remaining...")

            deleted_before = result.deleted + result.ghosts
            oldest_id = self._delete_page(groups, channel_id, skipped_ids, result)

            if not oldest_id:
                return None

            next_max_id = previous_snowflake(oldest_id)
            if next_max_id == result.max_id:
                return None
            result.max_id = next_max_id

            if result.deleted + result.ghosts == deleted_before:
                logger.info("No deletions in this page; continuing deeper into older history")

            time.sleep(self.pacing.search)

    def _delete_page(self, groups: List[List[Dict]], channel_id: Optional[str],
                     skipped_ids: Set[str], result: DeletionResult) -> str:
        """Delete the hits on one search page and return the oldest hit ID."""
        oldest_id = ''
        seen: Set[str] = set()

        for group in groups:
            for msg in group:
                if not msg.get('hit') or msg.get('author', {}).get('id') != self.client.user_id:
                    continue

                message_id = msg.get('id') or ''
                oldest_id = older_snowflake(oldest_id, message_id)

                if not message_id or message_id in seen or message_id in skipped_ids:
                    continue
                seen.add(message_id)

                target = channel_id or msg.get('channel_id')
                if not target:
                    skipped_ids.add(message_id)
                    continue

                self._delete_one(target, message_id, skipped_ids, result)

        return oldest_id

    def _delete_one(self, channel_id: str, message_id: str,
                    skipped_ids: Set[str], result: DeletionResult):
        outcome, detail = self.client.delete_message(channel_id, message_id)

        if outcome == 'OK':
            result.deleted += 1
        elif outcome == 'GHOST':
            result.ghosts += 1
            skipped_ids.add(message_id)
            logger.debug(f"Message {message_id} already deleted (ghost)")
        elif outcome == 'SKIP':
            result.skipped += 1
            skipped_ids.add(message_id)
            logger.warning(f"Cannot delete message {message_id} (no permission)")
        elif outcome == 'INVALID':
            result.skipped += 1
            skipped_ids.add(message_id)
            suffix = f", {detail}" if detail else ""
            logger.warning(f"Cannot delete message {message_id} (HTTP 400{suffix})")
            time.sleep(self.pacing.error_backoff)
        else:
            result.failed += 1
            logger.warning(f"Failed to delete message {message_id} ({detail})")
            time.sleep(self.pacing.error_backoff)

        time.sleep(self.pacing.delete)
