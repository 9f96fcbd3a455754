"""
Unit tests for the command line interface.
"""
from unittest.mock import patch

import pytest

from discord_purge import cli
from discord_purge.exceptions import AuthenticationError
from discord_purge.purge import PurgeStats


@pytest.fixture
def no_env_token(monkeypatch, tmp_path):
    """Run from an empty directory with no token in the environment."""
    monkeypatch.delenv('DISCORD_TOKEN', raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestParseSelection:
    """Test parse_selection."""

    @pytest.mark.parametrize("text", ["", "  ", "none", "N", "0"])
    def test_nothing_selected(self, text):
        assert parse(text) == set()

    @pytest.mark.parametrize("text", ["all", "*", " ALL "])
    def test_everything_selected(self, text):
        assert parse(text) == {1, 2, 3, 4, 5}

    def test_list_and_ranges(self):
        assert parse("1, 3-4") == {1, 3, 4}
        assert parse("5;2") == {2, 5}

    def test_reversed_range(self):
        assert parse("4-2") == {2, 3, 4}

    @pytest.mark.parametrize("text", ["6", "0-2", "2-9", "a", "1-", "1-2-3", "x-2"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse(text)


def parse(text):
    return cli.parse_selection(text, 5)


class TestToken:
    """Test token loading."""

    def test_clean_token(self):
        assert cli.clean_token('  "abc.def"\n') == 'abc.def'
        assert cli.clean_token("'abc'") == 'abc'

    def test_argument_wins(self, no_env_token, monkeypatch):
        monkeypatch.setenv('DISCORD_TOKEN', 'from-env')
        assert cli.load_token(' "from-arg" ') == 'from-arg'

    def test_environment(self, no_env_token, monkeypatch):
        monkeypatch.setenv('DISCORD_TOKEN', 'from-env')
        (no_env_token / '.env').write_text('DISCORD_TOKEN=from-file\n', encoding='utf-8')
        assert cli.load_token() == 'from-env'

    def test_env_file(self, no_env_token):
        (no_env_token / '.env').write_text('OTHER=1\nDISCORD_TOKEN="from-file"\n', encoding='utf-8')
        assert cli.load_token() == 'from-file'

    def test_prompt(self, no_env_token):
        with patch('builtins.input', return_value=' typed '):
            assert cli.load_token() == 'typed'

    def test_non_interactive(self, no_env_token):
        assert cli.load_token(interactive=False) is None

    @pytest.mark.parametrize("source", ["argument", "environment", "env_file"])
    def test_source_reported_on_console_and_log(self, no_env_token, monkeypatch, capsys, source):
        """Test every token source is announced the same way."""
        token_arg = None
        if source == "argument":
            token_arg = "from-arg"
        elif source == "environment":
            monkeypatch.setenv("DISCORD_TOKEN", "from-env")
        else:
            (no_env_token / ".env").write_text("DISCORD_TOKEN=from-file\n", encoding="utf-8")

        with patch("discord_purge.cli.logger") as mock_logger:
            assert cli.load_token(token_arg)

        assert "Using token from" in capsys.readouterr().out
        mock_logger.info.assert_called_once()
        assert mock_logger.info.call_args[0][0].startswith("Using token from")


class TestMain:
    """Test main exit paths."""

    @pytest.fixture(autouse=True)
    def quiet_logging(self):
        with patch('discord_purge.cli.setup_logging'):
            yield

    def test_missing_token_exits(self, no_env_token):
        with patch('builtins.input', return_value=''):
            with pytest.raises(SystemExit) as exc_info:
                cli.main([])
        assert exc_info.value.code == 1

    def test_bad_config_exits(self, no_env_token):
        (no_env_token / 'config.json').write_text('{oops', encoding='utf-8')
        with pytest.raises(SystemExit) as exc_info:
            cli.main(['--config', 'config.json', '--token', 't'])
        assert exc_info.value.code == 1

    def test_authentication_failure_exits(self, no_env_token):
        with patch('discord_purge.cli.DiscordClient') as client_cls:
            client_cls.return_value.authenticate.side_effect = AuthenticationError("Invalid token")
            with pytest.raises(SystemExit) as exc_info:
                cli.main(['--token', 'bad'])
        assert exc_info.value.code == 1

    def test_declined_confirmation_exits_cleanly(self, no_env_token):
        with patch('discord_purge.cli.DiscordClient') as client_cls, \
                patch('discord_purge.cli.Purger') as purger_cls, \
                patch('builtins.input', side_effect=['', '', 'no']):
            client_cls.return_value.get_all_guilds.return_value = [{'id': 'g1', 'name': 'One'}]
            client_cls.return_value.get_dm_channels.return_value = [{'id': 'd1', 'type': 1}]
            with pytest.raises(SystemExit) as exc_info:
                cli.main(['--token', 't'])

        assert exc_info.value.code == 0
        purger_cls.assert_not_called()

    def test_full_run_with_exclusions(self, no_env_token):
        with patch('discord_purge.cli.DiscordClient') as client_cls, \
                patch('discord_purge.cli.Purger') as purger_cls, \
                patch('discord_purge.cli.run_cleanup') as cleanup, \
                patch('builtins.input', side_effect=['2', '1', 'yes', 'no']):
            client = client_cls.return_value
            client.get_all_guilds.return_value = [{'id': 'g1', 'name': 'One'}, {'id': 'g2', 'name': 'Two'}]
            client.get_dm_channels.return_value = [{'id': 'd1', 'type': 1}]
            purger_cls.return_value.run.return_value = PurgeStats()

            cli.main(['--token', 't', '--data-package', 'pkg'])

        options, package = purger_cls.return_value.run.call_args[0]
        assert options.excluded_guild_ids == frozenset(['g2'])
        assert options.excluded_dm_channel_ids == frozenset(['d1'])
        assert package == 'pkg'
        cleanup.assert_not_called()

    def test_interrupt_exits_cleanly(self, no_env_token):
        with patch('discord_purge.cli.DiscordClient') as client_cls:
            client_cls.return_value.authenticate.side_effect = KeyboardInterrupt
            with pytest.raises(SystemExit) as exc_info:
                cli.main(['--token', 't'])
        assert exc_info.value.code == 0
