"""
Full message history scanning.

Search only finds what Discord has indexed. Walking the history page by page
is slower but sees everything, so it backs up search for DMs and old
server content, and it is the only way to find our reactions.
"""
import logging
import time
from typing import Dict, Iterator, List, Optional, Sequence

import requests

from discord_purge import settings
from discord_purge.client import DiscordClient
from discord_purge.exceptions import HistoryFetchError, RateLimitExceeded
from discord_purge.settings import Pacing

logger = logging.getLogger(__name__)


def iter_message_pages(client: DiscordClient, channel_id: str,
                       pacing: Optional[Pacing] = None,
                       tolerated: Sequence[int] = (403,),
                       page_size: int = settings.MESSAGE_PAGE_SIZE) -> Iterator[List[Dict]]:
    """Yield pages of a channel's messages, newest first.

    Stops quietly on an empty page, a short page (end of history) or a status
    in ``tolerated``. The batch delay is applied between pages.

    Raises:
        HistoryFetchError: any other non-200 status, an exhausted rate
            limit budget or a transport failure.
    """
    pacing = pacing or client.pacing
    before_id = None

    while True:
        try:
            body, status = client.get_messages(channel_id, before=before_id, limit=page_size)
        except (RateLimitExceeded, requests.exceptions.RequestException) as e:
            raise HistoryFetchError(f"Fetching messages: {e}") from e

        if status in tolerated:
            logger.debug(f"History of {channel_id} not readable (HTTP {status})")
            return
        if status != 200:
            raise HistoryFetchError(f"Fetching messages: HTTP {status}")
        if not isinstance(body, list):
            raise HistoryFetchError("Fetching messages: unexpected response body")
        if not body:
            return

        yield body

        before_id = body[-1]['id']
        if len(body) < page_size:
            return

        time.sleep(pacing.batch)


def delete_channel_history(client: DiscordClient, channel_id: str,
                           pacing: Optional[Pacing] = None) -> int:
    """Delete every message we authored in a channel by walking its history.

    Already-deleted messages count as deleted; any other failure is left
    alone and not counted.

    Returns:
        Number of messages removed.

    Raises:
        HistoryFetchError: a page could not be fetched. Its ``deleted``
            includes what was removed before that.
    """
    pacing = pacing or client.pacing
    total_deleted = 0

    try:
        for page in iter_message_pages(client, channel_id, pacing):
            for msg in page:
                if msg.get('author', {}).get('id') != client.user_id:
                    continue

                outcome, _ = client.delete_message(channel_id, msg['id'])
                if outcome in ('OK', 'GHOST'):
                    total_deleted += 1
                time.sleep(pacing.delete)
    except HistoryFetchError as e:
        e.deleted += total_deleted
        raise

    if total_deleted:
        logger.info(f"History scan removed {total_deleted} messages from {channel_id}")
    return total_deleted
