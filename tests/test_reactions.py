"""
Unit tests for reaction removal.
"""
from unittest.mock import call

import requests

from conftest import make_message
from discord_purge.reactions import format_emoji, remove_reactions_from_channel


def reaction(name, emoji_id=None, me=True):
    return {'emoji': {'id': emoji_id, 'name': name}, 'count': 1, 'me': me}


class TestFormatEmoji:
    """Test format_emoji."""

    def test_custom_emoji(self):
        assert format_emoji({'id': '555', 'name': 'pepe'}) == 'pepe:555'

    def test_unicode_emoji_is_encoded(self):
        assert format_emoji({'id': None, 'name': '👍'}) == '%F0%9F%91%8D'

    def test_missing_name(self):
        assert format_emoji({}) == ''


class TestRemoveReactions:
    """Test remove_reactions_from_channel."""

    def test_removes_only_our_reactions(self, mock_client):
        messages = [
            make_message('20', author_id='999', reactions=[
                reaction('pepe', '555'), reaction('👍', me=False),
            ]),
            make_message('19', author_id='999', reactions=[reaction('👍')]),
            make_message('18'),
        ]
        mock_client.get_messages.return_value = (messages, 200)
        mock_client.remove_reaction.side_effect = [('OK', ''), ('GHOST', '')]

        removed = remove_reactions_from_channel(mock_client, 'c1')

        assert removed == 2
        assert mock_client.remove_reaction.call_args_list == [
            call('c1', '20', 'pepe:555'), call('c1', '19', '%F0%9F%91%8D'),
        ]

    def test_failed_removal_not_counted(self, mock_client):
        mock_client.get_messages.return_value = ([make_message('5', reactions=[reaction('x', '1')])], 200)
        mock_client.remove_reaction.return_value = ('SKIP', 'code 50013: Missing Permissions')

        assert remove_reactions_from_channel(mock_client, 'c1') == 0

    def test_unreadable_channel(self, mock_client):
        mock_client.get_messages.return_value = ({'code': 10003}, 404)
        assert remove_reactions_from_channel(mock_client, 'c1') == 0

    def test_errors_end_sweep_with_count(self, mock_client):
        """Test a failure mid-sweep returns what was removed so far."""
        first = [make_message(str(200 - i), reactions=[reaction('x', '1')]) for i in range(100)]
        mock_client.get_messages.side_effect = [(first, 200), requests.exceptions.ConnectionError()]
        mock_client.remove_reaction.return_value = ('OK', '')

        assert remove_reactions_from_channel(mock_client, 'c1') == 100
