# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""Runtime configuration, read once from the environment at startup."""

import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import dotenv_values, find_dotenv

from gateway_sync.errors import ConfigError

DEFAULT_API_HOST = "https://api.cloudflare.com/client/v4"
DEFAULT_LIST_ITEM_SIZE = 1000
DEFAULT_LIST_ITEM_LIMIT = 300000
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_MAX_CONCURRENT_DOWNLOADS = 4

@dataclass(frozen=True)
class Config:
    account_id: str
    api_token: str = ""
    api_key: str = ""
    account_email: str = ""
    api_host: str = DEFAULT_API_HOST
    allow_urls: Tuple[str, ...] = ()
    block_urls: Tuple[str, ...] = ()
    list_item_size: int = DEFAULT_LIST_ITEM_SIZE
    list_item_limit: int = DEFAULT_LIST_ITEM_LIMIT
    dry_run: bool = False
    block_page_enabled: bool = False
    block_based_on_sni: bool = False
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    max_concurrent_downloads: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS

    def auth_headers(self) -> Dict[str, str]:
        """Headers authenticating every API request. The token wins over the legacy key."""
        if self.api_token:
            return {"Authorization": f"Bearer {self.api_token}"}
        return {"X-Auth-Email": self.account_email, "X-Auth-Key": self.api_key}

def _env_bool(env: Mapping[str, str], name: str) -> bool:
    value = env.get(name, "").strip().lower()
    return value in ("1", "true")

def _env_positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        value = int(env.get(name, "").strip())
    except ValueError:
        return default
    return value if value > 0 else default

def read_multi_env(env: Mapping[str, str], name: str) -> List[str]:
    """Split a newline- and/or comma-separated variable into trimmed values."""
    raw = env.get(name, "")
    if not raw:
        return []
    values = []
    for line in raw.replace("\r", "").split("\n"):
        for part in line.split(","):
            part = part.strip()
            if part:
                values.append(part)
    return values

def read_dotenv(path: Optional[str] = None) -> Dict[str, str]:
    """Variables from a local .env file, if one exists. Missing files yield nothing."""
    path = path or find_dotenv(usecwd=True)
    if not path:
        return {}
    return {k: v for k, v in dotenv_values(path).items() if v is not None}

def load_from_env(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build the Config from the process environment.

    Without an explicit mapping, a .env file in the working directory (or one
    of its parents) is read first; real environment variables take precedence.
    """
    env = {**read_dotenv(), **os.environ} if environ is None else environ

    token = env.get("CLOUDFLARE_API_TOKEN", "").strip()
    key = env.get("CLOUDFLARE_API_KEY", "").strip()
    email = env.get("CLOUDFLARE_ACCOUNT_EMAIL", "").strip()
    account = env.get("CLOUDFLARE_ACCOUNT_ID", "").strip()

    if not token and not key:
        raise ConfigError("one of CLOUDFLARE_API_TOKEN or CLOUDFLARE_API_KEY is required")
    if not token and not email:
        raise ConfigError("CLOUDFLARE_ACCOUNT_EMAIL is required when using CLOUDFLARE_API_KEY")
    if not account:
        raise ConfigError("CLOUDFLARE_ACCOUNT_ID is required")

    allow = read_multi_env(env, "ALLOWLIST_URLS") or read_multi_env(env, "USER_DEFINED_ALLOWLIST_URLS")
    block = read_multi_env(env, "BLOCKLIST_URLS") or read_multi_env(env, "USER_DEFINED_BLOCKLIST_URLS")

    return Config(
        account_id=account,
        api_token=token,
        api_key=key,
        account_email=email,
        api_host=env.get("CLOUDFLARE_API_HOST", "").strip() or DEFAULT_API_HOST,
        allow_urls=tuple(allow),
        block_urls=tuple(block),
        list_item_size=_env_positive_int(env, "CLOUDFLARE_LIST_ITEM_SIZE", DEFAULT_LIST_ITEM_SIZE),
        list_item_limit=_env_positive_int(env, "CLOUDFLARE_LIST_ITEM_LIMIT", DEFAULT_LIST_ITEM_LIMIT),
        dry_run=_env_bool(env, "DRY_RUN"),
        block_page_enabled=_env_bool(env, "BLOCK_PAGE_ENABLED"),
        block_based_on_sni=_env_bool(env, "BLOCK_BASED_ON_SNI"),
        request_timeout=_env_positive_int(env, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        max_concurrent_downloads=_env_positive_int(
            env, "MAX_CONCURRENT_DOWNLOADS", DEFAULT_MAX_CONCURRENT_DOWNLOADS),
    )
