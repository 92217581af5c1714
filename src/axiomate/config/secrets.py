"""API key lookup.

A key is taken from the process environment when set there. Otherwise the
project's ``.env.secrets`` file is consulted; python-dotenv parses it once per
path and the result is memoized until `clear_secret_cache` is called.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

SECRETS_FILE = ".env.secrets"


@lru_cache(maxsize=4)
def _secrets_file_values(path: Path) -> dict[str, str | None]:
    return dotenv_values(path) if path.is_file() else {}


def fetch_secret(
    key: str,
    default: str | None = None,
    secrets_path: Path | None = None,
) -> str | None:
    """Look up `key`, returning `default` when neither source defines it.

    Example:
        >>> fetch_secret("ANTHROPIC_API_KEY")
        'sk-ant-...'
    """
    from_env = os.environ.get(key)
    if from_env is not None:
        return from_env

    from_file = _secrets_file_values(secrets_path or Path(SECRETS_FILE)).get(key)
    return default if from_file is None else from_file


def clear_secret_cache() -> None:
    _secrets_file_values.cache_clear()
