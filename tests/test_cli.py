"""Tests for the command line entry point."""

import json

import pytest

import cli
from conftest import PEER_PUBLIC_KEY, PRIVATE_KEY
from core.exceptions import ConfigurationError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "inbound": {
                    "wireguard": {
                        "localAddress": "10.0.0.1",
                        "privateKey": PRIVATE_KEY,
                        "peers": [{"publicKey": PEER_PUBLIC_KEY, "allowedIps": "10.0.0.2/32"}],
                    },
                    "allowlist": [{"url": "http://svc/allowed-get", "allowedMethods": ["GET"]}],
                }
            }
        )
    )
    return path


class TestParseArgs:
    def test_config_paths_in_order(self):
        paths, flags = cli.parse_args(["-c", "a.json", "--config", "b.yaml", "--config=c.json", "--check"])
        assert paths == ["a.json", "b.yaml", "c.json"]
        assert flags == {"--check"}

    def test_missing_path(self):
        with pytest.raises(ConfigurationError):
            cli.parse_args(["-c"])

    def test_unknown_argument(self):
        with pytest.raises(ConfigurationError):
            cli.parse_args(["--frobnicate"])


class TestMain:
    def test_check_prints_rules(self, config_file, capsys):
        cli.main(["-c", str(config_file), "--check"])
        out = capsys.readouterr().out
        assert "Configuration OK" in out
        assert "http://svc/allowed-get" in out

    def test_wg_config(self, config_file, capsys):
        cli.main(["-c", str(config_file), "--wg-config"])
        out = capsys.readouterr().out
        assert "[Interface]" in out
        assert "Address = 10.0.0.1/32" in out

    def test_invalid_config_exits(self, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text("{}")
        with pytest.raises(SystemExit) as exc:
            cli.main(["-c", str(bad)])
        assert exc.value.code == 1
        assert "ERROR" in capsys.readouterr().out

    def test_listener_failure_exits(self, config_file, monkeypatch):
        def fail(config, dashboard=False):
            raise ConfigurationError("failed to start TCP listener")

        monkeypatch.setattr(cli, "serve", fail)
        monkeypatch.setattr(cli, "_setup_logging", lambda config: None)
        with pytest.raises(SystemExit) as exc:
            cli.main(["-c", str(config_file)])
        assert exc.value.code == 1

    def test_help(self, capsys):
        cli.main(["--help"])
        assert "network-broker" in capsys.readouterr().out
