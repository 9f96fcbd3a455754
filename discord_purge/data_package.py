"""
Discord data package reader.

The data export ("Request all of my data") lists every channel you ever
messaged in ``messages/index.json``, including DMs that no longer show up
anywhere in the client.
"""
import json
import os
from typing import List

from discord_purge import settings
from discord_purge.exceptions import DataPackageError


def find_index_file(package_path: str) -> str:
    """Resolve a package directory or index file path to the index file."""
    if not os.path.exists(package_path):
        raise DataPackageError(f"Cannot access path {package_path}")

    if os.path.isdir(package_path):
        candidate = os.path.join(package_path, settings.DATA_PACKAGE_INDEX)
        if not os.path.isfile(candidate):
            raise DataPackageError(f"Could not find {settings.DATA_PACKAGE_INDEX} in {package_path}")
        return candidate

    return package_path


def load_channel_ids(package_path: str) -> List[str]:
    """Return the channel IDs recorded in a data package.

    Args:
        package_path: The extracted package directory, or the index.json
            file itself.

    Raises:
        DataPackageError: the index is missing or is not a JSON object.
    """
    index_path = find_index_file(package_path)

    try:
        with open(index_path, 'r', encoding='utf-8') as f:
            index = json.load(f)
    except OSError as e:
        raise DataPackageError(f"Reading index file: {e}") from e
    except ValueError as e:
        raise DataPackageError(f"Parsing index.json: {e}") from e

    if not isinstance(index, dict):
        raise DataPackageError("Parsing index.json: expected an object of channel IDs")

    return list(index)
