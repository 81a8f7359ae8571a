"""Tests for YAML configuration loading."""

from pathlib import Path

import pydantic
import pytest

from eth_node_client.config import (
    CONFIG_ENV_VAR,
    AccountConfig,
    ClientConfig,
    default_config_path,
    load_config,
    save_config,
)

CONFIG_YAML = """\
node:
  url: https://node.internal:8545
  poa: true
collection:
  mnemonic: ${TEST_COLLECTION_MNEMONIC}
  account_password: ${TEST_COLLECTION_PASSWORD}
user:
  mnemonic: plain words
  passphrase: ${TEST_UNSET_VARIABLE}
replay:
  block_count: 6
"""


class TestLoadConfig:

    def test_expands_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_COLLECTION_MNEMONIC", "test test junk")
        monkeypatch.setenv("TEST_COLLECTION_PASSWORD", "s3cret")
        monkeypatch.delenv("TEST_UNSET_VARIABLE", raising=False)
        path = tmp_path / "client.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")

        config = load_config(path)

        assert config.node.url == "https://node.internal:8545"
        assert config.node.poa is True
        assert config.collection.mnemonic == "test test junk"
        assert config.collection.account_password == "s3cret"
        assert config.user.mnemonic == "plain words"
        assert config.user.passphrase == "${TEST_UNSET_VARIABLE}"
        assert config.replay.block_count == 6

    def test_defaults_for_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        config = load_config(path)

        assert config.node.url == "http://127.0.0.1:8545"
        assert config.node.request_timeout == 30.0
        assert config.node.poll_interval == 2.0
        assert config.replay.block_count == 12

    def test_negative_replay_count_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("replay:\n  block_count: -1\n", encoding="utf-8")

        with pytest.raises(pydantic.ValidationError):
            load_config(path)

    def test_save_then_load(self, tmp_path):
        config = ClientConfig(collection=AccountConfig(mnemonic="a b c", account_password="pw"))
        path = tmp_path / "nested" / "client.yaml"

        save_config(config, path)

        assert load_config(path) == config


class TestSecrets:

    def test_repr_hides_secrets(self):
        account = AccountConfig(mnemonic="test test junk", passphrase="pp", account_password="pw")
        text = repr(ClientConfig(collection=account)) + str(account)
        assert "junk" not in text
        assert "pw" not in text


class TestDefaultPath:

    def test_environment_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "custom.yaml"))
        assert default_config_path() == tmp_path / "custom.yaml"

    def test_working_directory(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert default_config_path() == Path.cwd() / "eth-node-client.yaml"
