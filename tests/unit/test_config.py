"""
Unit tests for secrets loading.
"""

import json

import pytest

from price_dashboard import config

BASE_SECRETS = {
    "ZOHO_CLIENT_ID": "cid",
    "ZOHO_CLIENT_SECRET": "secret",
    "ZOHO_REFRESH_TOKEN": "refresh",
    "ZOHO_ORG_ID": "org-1",
    "SHOPIFY_STORE": "shop.myshopify.com",
}


@pytest.fixture
def restore_config(monkeypatch):
    """load_secrets rewrites module globals; put them back afterwards."""
    for name in ("client", "OPENAI_MODEL", "HTTP_TIMEOUT", "SERVICE_ACCOUNT_FILE", "SPREADSHEET_ID"):
        monkeypatch.setattr(config, name, getattr(config, name))


def _write(tmp_path, data):
    path = tmp_path / "secrets.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadSecrets:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            config.load_secrets(tmp_path / "nope.json")

    def test_missing_keys(self, tmp_path, restore_config):
        data = dict(BASE_SECRETS)
        del data["ZOHO_ORG_ID"]
        with pytest.raises(KeyError, match="ZOHO_ORG_ID"):
            config.load_secrets(_write(tmp_path, data))

    def test_defaults_without_openai_key(self, tmp_path, restore_config):
        config.client = None
        secrets = config.load_secrets(_write(tmp_path, BASE_SECRETS))
        assert secrets["ZOHO_ORG_ID"] == "org-1"
        assert config.client is None
        assert config.OPENAI_MODEL == "gpt-4o"

    def test_optional_overrides(self, tmp_path, restore_config):
        data = {
            **BASE_SECRETS,
            "OPENAI_MODEL": "gpt-4o-mini",
            "HTTP_TIMEOUT": "12",
            "SPREADSHEET_ID": "sheet-xyz",
            "SERVICE_ACCOUNT_FILE": str(tmp_path / "sa.json"),
        }
        config.load_secrets(_write(tmp_path, data))
        assert config.OPENAI_MODEL == "gpt-4o-mini"
        assert config.HTTP_TIMEOUT == 12.0
        assert config.SPREADSHEET_ID == "sheet-xyz"
        assert config.SERVICE_ACCOUNT_FILE == tmp_path / "sa.json"

    def test_openai_client_created_with_key(self, tmp_path, restore_config):
        config.load_secrets(_write(tmp_path, {**BASE_SECRETS, "OPENAI_API_KEY": "sk-test"}))
        assert config.client is not None
