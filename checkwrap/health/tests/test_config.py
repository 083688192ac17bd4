"""
Tests for wrapper configuration module.
"""

import json
import tempfile
from pathlib import Path

import pytest

from checkwrap.health import config
from checkwrap.health.errors import ConfigError


class TestLoadConfigFile:
    """Tests for load_config_file function."""

    @pytest.fixture
    def temp_dir(self):
        """Create temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def _write(self, temp_dir, data):
        path = temp_dir / "checkwrap.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    def test_missing_file(self, temp_dir):
        """Test missing config file is a config error."""
        with pytest.raises(ConfigError, match="not found"):
            config.load_config_file(str(temp_dir / "nope.json"))

    def test_invalid_json(self, temp_dir):
        """Test malformed JSON is a config error."""
        path = temp_dir / "bad.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            config.load_config_file(str(path))

    def test_not_an_object(self, temp_dir):
        """Test top-level JSON must be an object."""
        with pytest.raises(ConfigError):
            config.load_config_file(self._write(temp_dir, ["a"]))

    def test_mail_to_string_is_split(self, temp_dir):
        """Test comma-separated recipients become a list."""
        loaded = config.load_config_file(
            self._write(temp_dir, {"mail_to": "a@example.com, b@example.com"})
        )
        assert loaded["mail_to"] == ["a@example.com", "b@example.com"]

    def test_mail_to_wrong_type(self, temp_dir):
        """Test non-string recipients are rejected."""
        with pytest.raises(ConfigError, match="mail_to"):
            config.load_config_file(self._write(temp_dir, {"mail_to": 5}))

    def test_unknown_keys_ignored(self, temp_dir):
        """Test unknown keys are dropped."""
        loaded = config.load_config_file(
            self._write(temp_dir, {"expire": "1d", "colour": "blue"})
        )
        assert loaded == {"expire": "1d"}

    def test_smtp_port_must_be_int(self, temp_dir):
        """Test SMTP port type is validated."""
        with pytest.raises(ConfigError, match="smtp.port"):
            config.load_config_file(self._write(temp_dir, {"smtp": {"port": "25"}}))


class TestBuildConfig:
    """Tests for build_config function."""

    def test_requires_program(self):
        """Test a program is mandatory."""
        with pytest.raises(ConfigError):
            config.build_config(None, environ={}, hostname="host1")

    def test_defaults(self):
        """Test defaults derived from program name and host."""
        cfg = config.build_config(
            "/usr/sbin/checkrestart", environ={}, hostname="host1"
        )

        assert cfg.identity == "checkrestart"
        assert cfg.argv == ["/usr/sbin/checkrestart"]
        assert cfg.state_dir == config.default_state_dir("checkrestart")
        assert cfg.subject == "checkrestart results on host1"
        assert cfg.mail_to == []
        assert cfg.expire_seconds is None
        assert cfg.slack_webhook_url is None
        assert cfg.smtp.host == "localhost"
        assert cfg.smtp.port == 25

    def test_extra_args_prepended(self):
        """Test -A arguments come before pass-through arguments."""
        cfg = config.build_config(
            "check_disks",
            ["/srv"],
            extra_args="-w 90 --label 'root fs'",
            environ={},
            hostname="host1",
        )
        assert cfg.argv == ["check_disks", "-w", "90", "--label", "root fs", "/srv"]

    def test_unbalanced_extra_args(self):
        """Test unparseable extra arguments are a config error."""
        with pytest.raises(ConfigError):
            config.build_config(
                "check_disks", extra_args="'open", environ={}, hostname="host1"
            )

    def test_options(self):
        """Test explicit options override defaults."""
        cfg = config.build_config(
            "check_disks",
            state_dir="/var/lib/checkwrap",
            mail_to="root@example.com,ops@example.com",
            subject="disks",
            expire="1d6h",
            environ={},
            hostname="host1",
        )

        assert cfg.state_dir == Path("/var/lib/checkwrap")
        assert cfg.mail_to == ["root@example.com", "ops@example.com"]
        assert cfg.subject == "disks"
        assert cfg.expire_seconds == 108000

    def test_config_file_defaults(self, tmp_path):
        """Test config file fills in options not given on the command line."""
        path = tmp_path / "checkwrap.json"
        path.write_text(
            json.dumps(
                {
                    "state_dir": str(tmp_path / "state"),
                    "mail_to": ["root@example.com"],
                    "expire": "2h",
                    "slack_webhook_env": "CHECKWRAP_SLACK",
                    "smtp": {
                        "host": "mail.example.com",
                        "port": 587,
                        "user": "bot",
                        "password_env": "CHECKWRAP_SMTP_PASSWORD",
                    },
                }
            ),
            encoding="utf-8",
        )
        environ = {
            "CHECKWRAP_SLACK": "https://hooks.example.com/x",
            "CHECKWRAP_SMTP_PASSWORD": "secret",
        }

        cfg = config.build_config(
            "check_disks",
            expire="30m",
            config_path=str(path),
            environ=environ,
            hostname="host1",
        )

        assert cfg.state_dir == tmp_path / "state"
        assert cfg.mail_to == ["root@example.com"]
        assert cfg.expire_seconds == 1800
        assert cfg.slack_webhook_url == "https://hooks.example.com/x"
        assert cfg.smtp.host == "mail.example.com"
        assert cfg.smtp.port == 587
        assert cfg.smtp.user == "bot"
        assert cfg.smtp.password == "secret"

    def test_smtp_environment(self):
        """Test SMTP_* environment variables configure the transport."""
        environ = {
            "SMTP_HOST": "smtp.example.com",
            "SMTP_PORT": "2525",
            "SMTP_FROM": "checks@example.com",
        }
        cfg = config.build_config("check_disks", environ=environ, hostname="host1")

        assert cfg.smtp.host == "smtp.example.com"
        assert cfg.smtp.port == 2525
        assert cfg.smtp.sender == "checks@example.com"

    def test_bad_smtp_port(self):
        """Test non-numeric SMTP_PORT is a config error."""
        with pytest.raises(ConfigError):
            config.build_config(
                "check_disks", environ={"SMTP_PORT": "smtp"}, hostname="host1"
            )


class TestIdentityFor:
    """Tests for identity_for function."""

    def test_basename(self):
        assert config.identity_for("/usr/lib/nagios/check_load") == "check_load"

    def test_bare_name(self):
        assert config.identity_for("checkrestart") == "checkrestart"

    def test_unusable_name(self):
        with pytest.raises(ConfigError):
            config.identity_for("/")
