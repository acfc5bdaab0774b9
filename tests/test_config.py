import pytest

from gateway_sync.config import (
    DEFAULT_API_HOST,
    DEFAULT_LIST_ITEM_LIMIT,
    DEFAULT_LIST_ITEM_SIZE,
    load_from_env,
    read_multi_env,
)
from gateway_sync.errors import ConfigError

BASE_ENV = {"CLOUDFLARE_API_TOKEN": "token", "CLOUDFLARE_ACCOUNT_ID": "acc"}


def test_defaults():
    config = load_from_env(BASE_ENV)

    assert config.api_host == DEFAULT_API_HOST
    assert config.list_item_size == DEFAULT_LIST_ITEM_SIZE
    assert config.list_item_limit == DEFAULT_LIST_ITEM_LIMIT
    assert config.allow_urls == ()
    assert config.block_urls == ()
    assert not config.dry_run
    assert not config.block_page_enabled
    assert not config.block_based_on_sni
    assert config.auth_headers() == {"Authorization": "Bearer token"}


def test_missing_credentials():
    with pytest.raises(ConfigError, match="CLOUDFLARE_API_TOKEN"):
        load_from_env({"CLOUDFLARE_ACCOUNT_ID": "acc"})


def test_missing_account():
    with pytest.raises(ConfigError, match="CLOUDFLARE_ACCOUNT_ID"):
        load_from_env({"CLOUDFLARE_API_TOKEN": "token"})


def test_api_key_requires_email():
    with pytest.raises(ConfigError, match="CLOUDFLARE_ACCOUNT_EMAIL"):
        load_from_env({"CLOUDFLARE_API_KEY": "key", "CLOUDFLARE_ACCOUNT_ID": "acc"})


def test_api_key_auth():
    config = load_from_env({"CLOUDFLARE_API_KEY": "key", "CLOUDFLARE_ACCOUNT_EMAIL": "me@example.com",
                            "CLOUDFLARE_ACCOUNT_ID": "acc"})

    assert config.auth_headers() == {"X-Auth-Email": "me@example.com", "X-Auth-Key": "key"}


@pytest.mark.parametrize("value,expected", [
    ("500", 500),
    ("0", DEFAULT_LIST_ITEM_SIZE),
    ("-3", DEFAULT_LIST_ITEM_SIZE),
    ("lots", DEFAULT_LIST_ITEM_SIZE),
    ("", DEFAULT_LIST_ITEM_SIZE),
])
def test_list_item_size(value, expected):
    config = load_from_env(dict(BASE_ENV, CLOUDFLARE_LIST_ITEM_SIZE=value))

    assert config.list_item_size == expected


@pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("true", True),
                                            ("yes", False), ("0", False)])
def test_boolean_flags(value, expected):
    config = load_from_env(dict(BASE_ENV, DRY_RUN=value, BLOCK_PAGE_ENABLED=value,
                                BLOCK_BASED_ON_SNI=value))

    assert config.dry_run is expected
    assert config.block_page_enabled is expected
    assert config.block_based_on_sni is expected


def test_url_lists_and_fallback_names():
    config = load_from_env(dict(
        BASE_ENV,
        USER_DEFINED_ALLOWLIST_URLS="https://a.example/allow.txt",
        BLOCKLIST_URLS="https://b.example/1.txt, https://b.example/2.txt\r\n\nhttps://b.example/3.txt",
    ))

    assert config.allow_urls == ("https://a.example/allow.txt",)
    assert config.block_urls == ("https://b.example/1.txt", "https://b.example/2.txt",
                                 "https://b.example/3.txt")


def test_read_multi_env_missing():
    assert read_multi_env({}, "BLOCKLIST_URLS") == []


DOTENV_KEYS = ("CLOUDFLARE_API_TOKEN", "CLOUDFLARE_API_KEY", "CLOUDFLARE_ACCOUNT_EMAIL",
               "CLOUDFLARE_ACCOUNT_ID", "BLOCKLIST_URLS", "DRY_RUN")


def test_dotenv_file_is_read(tmp_path, monkeypatch):
    for key in DOTENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    (tmp_path / ".env").write_text(
        "CLOUDFLARE_API_TOKEN=file-token\n"
        "CLOUDFLARE_ACCOUNT_ID=file-acc\n"
        "BLOCKLIST_URLS=https://lists.example.test/hosts.txt\n"
        "DRY_RUN=true\n"
    )
    monkeypatch.chdir(tmp_path)

    config = load_from_env()

    assert config.api_token == "file-token"
    assert config.account_id == "file-acc"
    assert config.block_urls == ("https://lists.example.test/hosts.txt",)
    assert config.dry_run


def test_environment_wins_over_dotenv(tmp_path, monkeypatch):
    for key in DOTENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    (tmp_path / ".env").write_text("CLOUDFLARE_API_TOKEN=file-token\nCLOUDFLARE_ACCOUNT_ID=file-acc\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "env-token")

    config = load_from_env()

    assert config.api_token == "env-token"
    assert config.account_id == "file-acc"


def test_explicit_mapping_ignores_dotenv(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("CLOUDFLARE_API_TOKEN=file-token\nCLOUDFLARE_ACCOUNT_ID=file-acc\n")
    monkeypatch.chdir(tmp_path)

    config = load_from_env(BASE_ENV)

    assert config.api_token == "token"
    assert config.account_id == "acc"
