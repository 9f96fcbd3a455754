"""
Shared fixtures for discord-purge tests.
"""
import json
from unittest.mock import Mock, patch

import pytest

from discord_purge.client import DiscordClient
from discord_purge.settings import Pacing

USER_ID = "111"


def make_response(status=200, json_data=None, text=None, headers=None):
    """Build a mock requests.Response."""
    response = Mock()
    response.status_code = status
    response.headers = headers or {}
    if json_data is not None:
        response.text = json.dumps(json_data)
        response.json.return_value = json_data
    else:
        response.text = text or ''
        response.json.side_effect = ValueError("No JSON object could be decoded")
    response.content = response.text.encode('utf-8')
    return response


def make_message(message_id, author_id=USER_ID, hit=True, channel_id="c1", reactions=None):
    msg = {
        'id': message_id,
        'author': {'id': author_id},
        'channel_id': channel_id,
        'hit': hit,
    }
    if reactions is not None:
        msg['reactions'] = reactions
    return msg


@pytest.fixture(autouse=True)
def sleep():
    """Never really sleep; tests can inspect the calls."""
    with patch('time.sleep') as mock_sleep:
        yield mock_sleep


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def http_client(session):
    """A real DiscordClient over a mock session."""
    client = DiscordClient("test-token", Pacing.none(), session=session)
    client.user_id = USER_ID
    client.username = "tester"
    return client


@pytest.fixture
def mock_client():
    """A DiscordClient stand-in for engine tests."""
    client = Mock(spec=DiscordClient)
    client.user_id = USER_ID
    client.pacing = Pacing.none()
    return client
