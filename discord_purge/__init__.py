"""
discord-purge - delete everything you ever posted on Discord

Removes your messages and reactions from every server, thread, forum post,
DM and group DM reachable from your account, using only the REST API.
Search is used where it works; full history scans cover the rest.
"""

__version__ = "1.4.0"
