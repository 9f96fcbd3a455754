"""
Discord REST client.

Everything goes through ``DiscordClient.request``, which owns the 429
retry/backoff protocol. The remaining methods are thin wrappers for the
endpoints the purge needs.
"""
import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from discord_purge import settings
from discord_purge.exceptions import AuthenticationError, PurgeError, RateLimitExceeded
from discord_purge.settings import Pacing

logger = logging.getLogger(__name__)

# Channel types
CHANNEL_GUILD_TEXT = 0
CHANNEL_DM = 1
CHANNEL_GUILD_VOICE = 2
CHANNEL_GROUP_DM = 3
CHANNEL_GUILD_CATEGORY = 4
CHANNEL_GUILD_NEWS = 5
CHANNEL_NEWS_THREAD = 10
CHANNEL_PUBLIC_THREAD = 11
CHANNEL_PRIVATE_THREAD = 12
CHANNEL_GUILD_STAGE_VOICE = 13
CHANNEL_GUILD_FORUM = 15
CHANNEL_GUILD_MEDIA = 16

# Relationship types
RELATIONSHIP_FRIEND = 1
RELATIONSHIP_BLOCKED = 2
RELATIONSHIP_INCOMING_REQUEST = 3
RELATIONSHIP_OUTGOING_REQUEST = 4
RELATIONSHIP_IMPLICIT = 5
RELATIONSHIP_SUGGESTION = 6

RELATIONSHIP_LABELS = {
    RELATIONSHIP_FRIEND: 'friend',
    RELATIONSHIP_BLOCKED: 'blocked',
    RELATIONSHIP_INCOMING_REQUEST: 'incoming request',
    RELATIONSHIP_OUTGOING_REQUEST: 'outgoing request',
}

ARCHIVED_THREAD_PATHS = {
    'public': "/channels/{channel_id}/threads/archived/public",
    'private': "/channels/{channel_id}/threads/archived/private",
    'joined': "/channels/{channel_id}/users/@me/threads/archived/private",
}


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def rate_limit_wait(method: str, path: str, headers, body) -> float:
    """Work out how long to sleep after a 429.

    Takes the largest of the Retry-After header, the X-RateLimit-Reset-After
    header and the body's retry_after, then applies the safety buffer and
    floors.
    """
    candidates = []
    for header in ('Retry-After', 'X-RateLimit-Reset-After'):
        value = _to_float(headers.get(header))
        if value is not None:
            candidates.append(value)

    if isinstance(body, dict):
        value = _to_float(body.get('retry_after'))
        if value is not None and value > 0:
            candidates.append(value)

    wait_time = max(candidates) if candidates else settings.DEFAULT_RETRY_AFTER
    wait_time = max(wait_time + settings.RATE_LIMIT_BUFFER, settings.RATE_LIMIT_FLOOR)

    if method.upper() == 'GET' and any(route in path for route in settings.STRICT_ROUTES):
        wait_time = max(wait_time, settings.STRICT_ROUTE_FLOOR)

    return wait_time


def format_api_error(body) -> str:
    """Render a Discord error body as ``code N: message``.

    Falls back to whatever text came back when the body is not the usual
    ``{"code": ..., "message": ...}`` object.
    """
    if isinstance(body, dict):
        code = body.get('code') or 0
        message = body.get('message') or ''
        if code and message:
            return f"code {code}: {message}"
        if code:
            return f"code {code}"
        if message:
            return message
    if body is None:
        return ''
    if isinstance(body, str):
        return body.strip()
    return json.dumps(body)


def classify_delete(status: int) -> str:
    """Map a DELETE status code to an outcome.

    Returns:
        'OK'      - Deleted (200/204)
        'GHOST'   - Already gone (404)
        'SKIP'    - Not allowed (403)
        'INVALID' - Rejected as bad request (400), e.g. archived thread
        'FAILED'  - Anything else
    """
    if status in (200, 204):
        return 'OK'
    if status == 404:
        return 'GHOST'
    if status == 403:
        return 'SKIP'
    if status == 400:
        return 'INVALID'
    return 'FAILED'


def _decode_body(response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class DiscordClient:
    """Discord REST client with automatic rate-limit handling"""

    def __init__(self, token: str, pacing: Optional[Pacing] = None,
                 session: Optional[requests.Session] = None):
        self.token = token
        self.pacing = pacing or Pacing()
        self.user_id: Optional[str] = None
        self.username: Optional[str] = None
        self.rate_limited = 0

        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': token,
            'Content-Type': 'application/json',
            'User-Agent': settings.USER_AGENT,
        })

    def request(self, method: str, path: str, params: Optional[Dict] = None,
                json_body: Optional[Dict] = None) -> Tuple[Any, int]:
        """Issue a request and return ``(body, status_code)``.

        Only 429 is handled here: the call is retried up to
        settings.MAX_RATE_LIMIT_RETRIES times. Every other status is handed
        back for the caller to interpret.

        Raises:
            RateLimitExceeded: still 429 after the last retry.
            requests.exceptions.RequestException: transport failure.
        """
        url = f"{settings.DISCORD_API_BASE}{path}"
        max_retries = settings.MAX_RATE_LIMIT_RETRIES

        for attempt in range(max_retries + 1):
            response = self.session.request(
                method, url, params=params, json=json_body,
                timeout=settings.REQUEST_TIMEOUT
            )
            body = _decode_body(response)

            if response.status_code != 429:
                return body, response.status_code

            self.rate_limited += 1
            if attempt == max_retries:
                break

            wait_time = rate_limit_wait(method, path, response.headers, body)
            scope = " (global)" if isinstance(body, dict) and body.get('global') else ""
            logger.warning(
                f"Rate limited{scope} on {method} {path}, waiting {wait_time:.1f}s "
                f"(attempt {attempt + 1}/{max_retries})"
            )
            time.sleep(wait_time)

        raise RateLimitExceeded(f"Still rate limited on {method} {path} after {max_retries} retries")

    def _get_json(self, path: str, what: str, params: Optional[Dict] = None):
        body, status = self.request('GET', path, params=params)
        if status != 200:
            raise PurgeError(f"Fetching {what}: HTTP {status} - {format_api_error(body)}")
        return body

    # -- Identity & listings ------------------------------------------------

    def authenticate(self) -> Dict:
        """Validate the token and remember who we are.

        Raises:
            AuthenticationError: the token was rejected.
            PurgeError: any other unexpected answer.
        """
        body, status = self.request('GET', '/users/@me')

        if status == 401:
            raise AuthenticationError("Invalid token - authentication failed (HTTP 401)")
        if status != 200 or not isinstance(body, dict):
            raise PurgeError(f"Unexpected status {status}: {format_api_error(body)}")

        self.user_id = body['id']
        self.username = body.get('username', '')
        logger.info(f"Token validated for user: {self.username} ({self.user_id})")
        return body

    def get_all_guilds(self) -> List[Dict]:
        """Return every guild the user is in, following the ``after`` cursor."""
        guilds: List[Dict] = []
        after_id = None

        while True:
            params = {'limit': settings.GUILD_PAGE_SIZE}
            if after_id:
                params['after'] = after_id

            page = self._get_json('/users/@me/guilds', 'guilds', params=params)
            if not page:
                break

            guilds.extend(page)
            after_id = page[-1]['id']

            if len(page) < settings.GUILD_PAGE_SIZE:
                break

            time.sleep(self.pacing.batch)

        return guilds

    def get_dm_channels(self) -> List[Dict]:
        return self._get_json('/users/@me/channels', 'DM channels') or []

    def get_relationships(self) -> List[Dict]:
        return self._get_json('/users/@me/relationships', 'relationships') or []

    def open_dm_channel(self, recipient_id: str) -> Dict:
        """Open (or re-open) the DM channel with a user."""
        body, status = self.request(
            'POST', '/users/@me/channels', json_body={'recipient_id': recipient_id}
        )
        if status != 200 or not isinstance(body, dict):
            raise PurgeError(f"Opening DM channel: HTTP {status} - {format_api_error(body)}")
        return body

    # -- Guild channels & threads -------------------------------------------

    def get_guild_channels(self, guild_id: str) -> List[Dict]:
        """All channels in a guild, or an empty list without access."""
        body, status = self.request('GET', f"/guilds/{guild_id}/channels")
        if status == 403:
            return []
        if status != 200:
            raise PurgeError(f"Fetching guild channels: HTTP {status}")
        return body or []

    def get_active_guild_threads(self, guild_id: str) -> List[Dict]:
        body, status = self.request('GET', f"/guilds/{guild_id}/threads/active")
        if status == 403:
            return []
        if status != 200:
            raise PurgeError(f"Fetching active threads: HTTP {status}")
        return (body or {}).get('threads') or []

    def list_archived_threads(self, channel_id: str, kind: str,
                              before: Optional[str] = None) -> Tuple[Any, int]:
        """Fetch one page of archived threads.

        ``kind`` is 'public', 'private' or 'joined' (private threads the user
        has joined).
        """
        path = ARCHIVED_THREAD_PATHS[kind].format(channel_id=channel_id)
        params = {'limit': settings.THREAD_PAGE_SIZE}
        if before:
            params['before'] = before
        return self.request('GET', path, params=params)

    # -- Messages -----------------------------------------------------------

    def search_guild_messages(self, guild_id: str, max_id: Optional[str] = None) -> Tuple[Any, int]:
        """Search a guild for our own messages, newest first."""
        params = {
            'author_id': self.user_id,
            'include_nsfw': 'true',
            'sort_by': 'timestamp',
            'sort_order': 'desc',
        }
        if max_id:
            params['max_id'] = max_id
        return self.request('GET', f"/guilds/{guild_id}/messages/search", params=params)

    def search_channel_messages(self, channel_id: str, max_id: Optional[str] = None) -> Tuple[Any, int]:
        """Search a DM or group DM for our own messages, newest first."""
        params = {
            'author_id': self.user_id,
            'sort_by': 'timestamp',
            'sort_order': 'desc',
        }
        if max_id:
            params['max_id'] = max_id
        return self.request('GET', f"/channels/{channel_id}/messages/search", params=params)

    def get_messages(self, channel_id: str, before: Optional[str] = None,
                     limit: int = settings.MESSAGE_PAGE_SIZE) -> Tuple[Any, int]:
        params = {'limit': limit}
        if before:
            params['before'] = before
        return self.request('GET', f"/channels/{channel_id}/messages", params=params)

    def _delete(self, path: str) -> Tuple[str, str]:
        try:
            body, status = self.request('DELETE', path)
        except (RateLimitExceeded, requests.exceptions.RequestException) as e:
            logger.error(f"DELETE {path} failed: {e}")
            return 'FAILED', str(e)

        outcome = classify_delete(status)
        detail = '' if outcome in ('OK', 'GHOST') else format_api_error(body)
        if outcome == 'FAILED' and not detail:
            detail = f"HTTP {status}"
        elif outcome == 'FAILED':
            detail = f"HTTP {status}, {detail}"
        return outcome, detail

    def delete_message(self, channel_id: str, message_id: str) -> Tuple[str, str]:
        """Delete a single message.

        Returns:
            ``(outcome, detail)`` where outcome is one of the values of
            ``classify_delete``. Transport failures and an exhausted rate
            limit budget come back as 'FAILED'.
        """
        return self._delete(f"/channels/{channel_id}/messages/{message_id}")

    def remove_reaction(self, channel_id: str, message_id: str, emoji: str) -> Tuple[str, str]:
        """Remove our own reaction. ``emoji`` must already be URL-ready."""
        return self._delete(f"/channels/{channel_id}/messages/{message_id}/reactions/{emoji}/@me")

    # -- Account cleanup ----------------------------------------------------

    def remove_friend(self, user_id: str) -> Tuple[str, str]:
        return self._delete(f"/users/@me/relationships/{user_id}")

    def leave_guild(self, guild_id: str) -> Tuple[str, str]:
        return self._delete(f"/users/@me/guilds/{guild_id}")
