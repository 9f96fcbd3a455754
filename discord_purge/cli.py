"""
Command line interface for discord-purge.

Usage:
    discord-purge                                  # Purge everything
    discord-purge --data-package ~/discord-export  # Also cover DMs from your data export
    discord-purge --config config.json             # Custom pacing
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Set

import requests

from discord_purge import __version__, settings
from discord_purge.cleanup import leave_all_guilds, remove_all_friends
from discord_purge.client import CHANNEL_GROUP_DM, DiscordClient
from discord_purge.exceptions import AuthenticationError, PurgeError
from discord_purge.log import setup_logging
from discord_purge.purge import PurgeOptions, PurgeStats, Purger, describe_channel, display_guild_name
from discord_purge.settings import load_settings

logger = logging.getLogger(__name__)


# Console colors (ANSI escape codes, works on most terminals)
class Colors:
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def clean_token(token: str) -> str:
    """Strip whitespace and the quotes people paste along with the token."""
    return token.strip('"\' \t\r\n')


def _token_source(source: str):
    print(f"{Colors.GREEN}Using token from {source}{Colors.ENDC}")
    logger.info(f"Using token from {source}")


def load_token(token_arg: Optional[str] = None, interactive: bool = True) -> Optional[str]:
    """Load the Discord token from the first source that has one.

    Priority:
        1. --token command-line argument
        2. DISCORD_TOKEN environment variable
        3. .env file in current directory
        4. Interactive prompt
    """
    if token_arg:
        _token_source("command-line argument")
        return clean_token(token_arg) or None

    if os.environ.get(settings.TOKEN_ENV_VAR):
        _token_source(f"{settings.TOKEN_ENV_VAR} environment variable")
        return clean_token(os.environ[settings.TOKEN_ENV_VAR]) or None

    env_file = Path('.env')
    if env_file.exists():
        with open(env_file, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line.startswith(f"{settings.TOKEN_ENV_VAR}="):
                    token = clean_token(line.split('=', 1)[1])
                    if token:
                        _token_source(".env file")
                        return token

    if not interactive:
        return None

    print("Discord no longer supports username/password login via the API.")
    print("Provide your user token instead:")
    print("  1. Open Discord in your browser and press F12")
    print("  2. In the Network tab, filter on 'api' and click any request")
    print("  3. Copy the value of the 'authorization' request header")
    print(f"  Or set the {settings.TOKEN_ENV_VAR} environment variable.\n")
    return clean_token(input("Enter your Discord user token: ")) or None


def parse_selection(text: str, maximum: int) -> Set[int]:
    """Parse a selection like ``1,3-5`` into 1-based indices.

    ``all`` or ``*`` selects everything; empty input, ``none``, ``n`` or
    ``0`` selects nothing.

    Raises:
        ValueError: on malformed or out-of-range input.
    """
    normalized = text.strip().lower()
    if normalized in ('', 'none', 'n', '0'):
        return set()
    if normalized in ('all', '*'):
        return set(range(1, maximum + 1))

    selected = set()
    for part in normalized.replace(';', ',').replace('\t', ',').replace(' ', ',').split(','):
        if not part:
            continue

        if '-' in part:
            bounds = part.split('-')
            if len(bounds) != 2 or not bounds[0] or not bounds[1]:
                raise ValueError(f"invalid range '{part}'")
            try:
                start, end = int(bounds[0]), int(bounds[1])
            except ValueError:
                raise ValueError(f"invalid range '{part}'") from None
            if start > end:
                start, end = end, start
            if start < 1 or end > maximum:
                raise ValueError(f"range {start}-{end} is out of bounds (1-{maximum})")
            selected.update(range(start, end + 1))
            continue

        try:
            index = int(part)
        except ValueError:
            raise ValueError(f"invalid selection '{part}'") from None
        if index < 1 or index > maximum:
            raise ValueError(f"selection {index} is out of bounds (1-{maximum})")
        selected.add(index)

    return selected


def prompt_selection(prompt: str, maximum: int) -> Set[int]:
    if maximum <= 0:
        return set()
    while True:
        try:
            return parse_selection(input(prompt), maximum)
        except ValueError as e:
            print(f"{Colors.RED}{e}{Colors.ENDC}")


def prompt_purge_options(guilds: List[Dict], dm_channels: List[Dict]) -> PurgeOptions:
    """Ask which servers and DMs to leave alone."""
    print(f"{Colors.BOLD}Optional scope selection{Colors.ENDC}")
    print("By default, the purge covers everything reachable on your account.")
    print("You can exclude specific servers and DM/group DM channels before starting.\n")

    excluded_guilds = set()
    if guilds:
        print(f"{Colors.BOLD}Servers:{Colors.ENDC}")
        for i, guild in enumerate(guilds, 1):
            print(f"  [{i}] {display_guild_name(guild)} (ID: {guild['id']})")
        print()
        picked = prompt_selection(
            "Enter server numbers to EXCLUDE (e.g. 1,3-5) or press Enter for none: ", len(guilds)
        )
        excluded_guilds = {guilds[i - 1]['id'] for i in picked}
    else:
        print("No servers found to list for exclusion.")
    print()

    excluded_dms = set()
    if dm_channels:
        print(f"{Colors.BOLD}Open DM / Group DM channels:{Colors.ENDC}")
        for i, channel in enumerate(dm_channels, 1):
            kind = "Group DM" if channel.get('type') == CHANNEL_GROUP_DM else "DM"
            print(f"  [{i}] {kind}: {describe_channel(channel)} (ID: {channel['id']})")
        print()
        picked = prompt_selection(
            "Enter DM/channel numbers to EXCLUDE (e.g. 2,4-6) or press Enter for none: ",
            len(dm_channels)
        )
        excluded_dms = {dm_channels[i - 1]['id'] for i in picked}
    else:
        print("No open DM channels found to list for exclusion.")
    print()

    print(f"{Colors.GREEN}Exclusions selected: {len(excluded_guilds)} servers, "
          f"{len(excluded_dms)} DM/group DM channels.{Colors.ENDC}\n")
    return PurgeOptions(excluded_guilds, excluded_dms)


def confirm(question: str) -> bool:
    return input(f"{question} (yes/no): ").strip().lower() in ('yes', 'y')


def print_summary(stats: PurgeStats):
    print(f"\n{Colors.HEADER}{'='*70}{Colors.ENDC}")
    print(f"{Colors.HEADER}PURGE COMPLETE{Colors.ENDC}")
    print(f"{Colors.HEADER}{'='*70}{Colors.ENDC}\n")

    print(f"{Colors.GREEN}Messages deleted:{Colors.ENDC}     {stats.total_messages_deleted}")
    print(f"{Colors.GREEN}Reactions removed:{Colors.ENDC}    {stats.total_reactions_removed}")
    print(f"{Colors.GREEN}DM messages deleted:{Colors.ENDC}  {stats.total_dm_messages_deleted}")

    print(f"\n{Colors.BOLD}Per-server breakdown:{Colors.ENDC}")
    if not stats.server_stats:
        print("  No servers processed.")
    for stat in stats.server_stats:
        print(f"  {stat.guild_name}")
        print(f"    Messages deleted:  {stat.messages}")
        print(f"    Reactions removed: {stat.reactions}")

    seconds = int(stats.elapsed.total_seconds())
    print(f"\n{Colors.BOLD}Duration:{Colors.ENDC} {seconds // 3600}h {(seconds % 3600) // 60}m {seconds % 60}s")
    print(f"{Colors.CYAN}Servers processed:{Colors.ENDC}    {stats.servers_processed}")
    print(f"{Colors.CYAN}DM channels processed:{Colors.ENDC} {stats.dm_channels_processed}")
    if stats.errors:
        print(f"{Colors.RED}Errors:{Colors.ENDC}               {len(stats.errors)} (see {settings.LOG_FILE})")


def run_cleanup(client: DiscordClient):
    """Remove all friends and leave all servers."""
    print(f"\n{Colors.CYAN}Removing friends...{Colors.ENDC}")
    try:
        friends = remove_all_friends(client)
        print(f"{Colors.GREEN}Removed {friends} friends.{Colors.ENDC}")
    except (PurgeError, requests.exceptions.RequestException) as e:
        print(f"{Colors.RED}Error removing friends: {e}{Colors.ENDC}")

    print(f"\n{Colors.CYAN}Leaving servers...{Colors.ENDC}")
    try:
        left = leave_all_guilds(client)
        print(f"{Colors.GREEN}Left {left} servers.{Colors.ENDC}")
    except (PurgeError, requests.exceptions.RequestException) as e:
        print(f"{Colors.RED}Error leaving servers: {e}{Colors.ENDC}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='discord-purge',
        description='Delete all of your Discord messages and reactions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Purge everything reachable from your account
  discord-purge

  # Also cover DMs that only exist in your data export
  discord-purge --data-package ~/Downloads/package

  # Slower pacing from a config file
  discord-purge --config config.json
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--data-package', '-d', metavar='PATH',
                        help='Discord data package directory (or its messages/index.json)')
    parser.add_argument('--token', '-t',
                        help=f'Discord auth token (optional, can also use .env or {settings.TOKEN_ENV_VAR})')
    parser.add_argument('--config', '-c', help='JSON config file with pacing settings')
    parser.add_argument('--log-level', default=settings.LOG_LEVEL,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Console log level (the log file always gets DEBUG)')
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    print(f"\n{Colors.HEADER}{'='*60}{Colors.ENDC}")
    print(f"{Colors.HEADER}DISCORD PURGE v{__version__}{Colors.ENDC}")
    print(f"{Colors.HEADER}{'='*60}{Colors.ENDC}\n")

    try:
        pacing = load_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"{Colors.RED}Error loading config: {e}{Colors.ENDC}")
        sys.exit(1)

    try:
        token = load_token(args.token)
        if not token:
            print(f"{Colors.RED}Error: Token is required.{Colors.ENDC}")
            sys.exit(1)

        client = DiscordClient(token, pacing)

        print(f"{Colors.CYAN}Authenticating...{Colors.ENDC}")
        try:
            client.authenticate()
        except (PurgeError, requests.exceptions.RequestException) as e:
            print(f"{Colors.RED}Authentication failed: {e}{Colors.ENDC}")
            if isinstance(e, AuthenticationError):
                print("\nTroubleshooting:")
                print("  - Make sure you copied the full token")
                print("  - Tokens expire; get a fresh one if it's old")
                print("  - Don't include quotes around the token")
            sys.exit(1)

        print(f"{Colors.GREEN}Authenticated as: {client.username} (ID: {client.user_id}){Colors.ENDC}\n")

        print(f"{Colors.CYAN}Loading servers and DM channels...{Colors.ENDC}")
        guilds: Optional[List[Dict]] = None
        dm_channels: Optional[List[Dict]] = None
        try:
            guilds = client.get_all_guilds()
        except (PurgeError, requests.exceptions.RequestException) as e:
            print(f"{Colors.YELLOW}Could not load server list for exclusions: {e}{Colors.ENDC}")
        try:
            dm_channels = client.get_dm_channels()
        except (PurgeError, requests.exceptions.RequestException) as e:
            print(f"{Colors.YELLOW}Could not load DM channel list for exclusions: {e}{Colors.ENDC}")

        if guilds is None and dm_channels is None:
            print(f"{Colors.YELLOW}Exclusion selection unavailable; continuing with full deletion scope.{Colors.ENDC}\n")
            options = PurgeOptions()
        else:
            print()
            options = prompt_purge_options(guilds or [], dm_channels or [])

        print(f"{Colors.YELLOW}This will DELETE your messages and reactions in all servers, threads,")
        print(f"forum posts, DMs (open and hidden) and group DMs, except your exclusions.{Colors.ENDC}")
        print(f"{Colors.YELLOW}This action cannot be undone!{Colors.ENDC}")
        if not confirm("Delete all public and private messages you have ever sent from this account?"):
            print(f"{Colors.CYAN}Operation cancelled.{Colors.ENDC}")
            sys.exit(0)

        print("\nStarting message purge... This may take a very long time.")
        print("You can press Ctrl+C at any time to stop. Already-deleted messages stay deleted.\n")

        stats = Purger(client, pacing).run(options, args.data_package)
        print_summary(stats)

        print()
        if confirm(f"{Colors.YELLOW}Also remove ALL friends and leave ALL servers?{Colors.ENDC}"):
            run_cleanup(client)
        else:
            print("Cleanup skipped. Friends and servers remain unchanged.")

    except KeyboardInterrupt:
        print(f"\n\n{Colors.YELLOW}Interrupted. Already-deleted content stays deleted; "
              f"run again to continue.{Colors.ENDC}")
        sys.exit(0)


if __name__ == '__main__':
    main()
