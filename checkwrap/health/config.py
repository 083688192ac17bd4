"""
Wrapper configuration - Builds the settings for one wrapper invocation.

Settings come from three places, highest priority first:
command-line options, an optional JSON config file, and the environment
(SMTP_* variables). They are resolved once into a WrapperConfig that is
passed explicitly to every component.
"""

import json
import logging
import os
import shlex
import socket
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from checkwrap.health.errors import ConfigError
from checkwrap.health.timespec import expiration_threshold

logger = logging.getLogger(__name__)


# Config file structure (every key optional)
# {
#   "state_dir": str,
#   "mail_to": str | List[str],
#   "subject": str,
#   "expire": str,              # timespec, e.g. "1d"
#   "slack_webhook_env": str,   # name of env var holding the webhook URL
#   "smtp": {
#     "host": str,
#     "port": int,
#     "user": str,
#     "password_env": str,      # name of env var holding the password
#     "from": str
#   }
# }

KNOWN_KEYS = ("state_dir", "mail_to", "subject", "expire", "slack_webhook_env", "smtp")
KNOWN_SMTP_KEYS = ("host", "port", "user", "password_env", "from")


@dataclass
class SmtpSettings:
    """Connection settings for the mail transport."""

    host: str = "localhost"
    port: int = 25
    user: Optional[str] = None
    password: Optional[str] = None
    sender: str = "checkwrap@localhost"


@dataclass
class WrapperConfig:
    """Everything one wrapper invocation needs, resolved up front."""

    program: str
    identity: str
    state_dir: Path
    hostname: str
    program_args: List[str] = field(default_factory=list)
    mail_to: List[str] = field(default_factory=list)
    subject: str = ""
    expire_seconds: Optional[int] = None
    slack_webhook_url: Optional[str] = None
    smtp: SmtpSettings = field(default_factory=SmtpSettings)

    @property
    def argv(self) -> List[str]:
        """Full argument vector for the wrapped program."""
        return [self.program] + self.program_args


def default_state_dir(identity: str) -> Path:
    """State directory used when none is configured."""
    return Path(tempfile.gettempdir()) / f"checkwrap-{identity}"


def default_subject(identity: str, hostname: str) -> str:
    return f"{identity} results on {hostname}"


def identity_for(program: str) -> str:
    """
    Derive the artifact namespace from a program name or path.

    Raises:
        ConfigError: If the name has no usable basename
    """
    identity = os.path.basename(program.rstrip("/"))
    if not identity or identity in (".", ".."):
        raise ConfigError(f"Cannot derive a name from program: {program!r}")
    return identity


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load wrapper defaults from a JSON file.

    Args:
        config_path: Path to the JSON config file

    Returns:
        Validated config dict

    Raises:
        ConfigError: If the file is missing or invalid
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    validated = _validate_config(data)
    logger.debug("Loaded config from %s: %s", config_path, sorted(validated))
    return validated


def _validate_config(data: Any) -> Dict[str, Any]:
    """
    Validate the top-level config mapping.

    Args:
        data: Parsed JSON

    Returns:
        Config dict restricted to known keys

    Raises:
        ConfigError: If a value has the wrong type
    """
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")

    for key in data:
        if key not in KNOWN_KEYS:
            logger.warning("Ignoring unknown config key: %s", key)

    validated = {key: data[key] for key in KNOWN_KEYS if key in data}

    for key in ("state_dir", "subject", "expire", "slack_webhook_env"):
        if key in validated and not isinstance(validated[key], str):
            raise ConfigError(f"Field '{key}' must be a string")

    if "mail_to" in validated:
        mail_to = validated["mail_to"]
        if isinstance(mail_to, str):
            validated["mail_to"] = split_recipients(mail_to)
        elif isinstance(mail_to, list) and all(isinstance(a, str) for a in mail_to):
            validated["mail_to"] = list(mail_to)
        else:
            raise ConfigError("Field 'mail_to' must be a string or a list of strings")

    if "smtp" in validated:
        validated["smtp"] = _validate_smtp(validated["smtp"])

    return validated


def _validate_smtp(smtp: Any) -> Dict[str, Any]:
    if not isinstance(smtp, dict):
        raise ConfigError("Field 'smtp' must be an object")

    for key in smtp:
        if key not in KNOWN_SMTP_KEYS:
            logger.warning("Ignoring unknown smtp config key: %s", key)

    for key in ("host", "user", "password_env", "from"):
        if key in smtp and not isinstance(smtp[key], str):
            raise ConfigError(f"Field 'smtp.{key}' must be a string")
    # bool is an int subclass
    if "port" in smtp and (
        not isinstance(smtp["port"], int) or isinstance(smtp["port"], bool)
    ):
        raise ConfigError("Field 'smtp.port' must be an int")

    return {key: smtp[key] for key in KNOWN_SMTP_KEYS if key in smtp}


def split_recipients(value: str) -> List[str]:
    """Split a comma-separated recipient list."""
    return [address.strip() for address in value.split(",") if address.strip()]


def smtp_settings(
    file_smtp: Mapping[str, Any], environ: Mapping[str, str]
) -> SmtpSettings:
    """
    Resolve mail transport settings from the config file and environment.

    Environment variables SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD and
    SMTP_FROM win over the config file.
    """
    password = None
    if file_smtp.get("password_env"):
        password = environ.get(file_smtp["password_env"])

    port = environ.get("SMTP_PORT")
    try:
        resolved_port = int(port) if port else int(file_smtp.get("port", 25))
    except ValueError as e:
        raise ConfigError(f"SMTP_PORT must be an integer: {port!r}") from e

    return SmtpSettings(
        host=environ.get("SMTP_HOST") or file_smtp.get("host", "localhost"),
        port=resolved_port,
        user=environ.get("SMTP_USER") or file_smtp.get("user"),
        password=environ.get("SMTP_PASSWORD") or password,
        sender=environ.get("SMTP_FROM")
        or file_smtp.get("from", "checkwrap@localhost"),
    )


def build_config(
    program: Optional[str],
    program_args: Sequence[str] = (),
    extra_args: Optional[str] = None,
    state_dir: Optional[str] = None,
    mail_to: Optional[str] = None,
    subject: Optional[str] = None,
    expire: Optional[str] = None,
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    hostname: Optional[str] = None,
) -> WrapperConfig:
    """
    Build the configuration for one invocation.

    Args:
        program: Wrapped program name or path
        program_args: Arguments passed through to the program
        extra_args: Shell-quoted arguments prepended to program_args
        state_dir: Directory for the result artifacts
        mail_to: Comma-separated mail recipients; None prints to stdout
        subject: Mail subject; None uses "<program> results on <host>"
        expire: Expiration timespec for saved results
        config_path: Optional JSON config file with defaults
        environ: Environment mapping (defaults to os.environ)
        hostname: Host name used in messages (defaults to the FQDN)

    Returns:
        WrapperConfig

    Raises:
        ConfigError: On a missing program or invalid settings
    """
    if not program:
        raise ConfigError("No program to run")

    if environ is None:
        environ = os.environ
    if hostname is None:
        hostname = socket.getfqdn()

    file_config: Dict[str, Any] = {}
    if config_path:
        file_config = load_config_file(config_path)

    identity = identity_for(program)

    args: List[str] = []
    if extra_args:
        try:
            args.extend(shlex.split(extra_args))
        except ValueError as e:
            raise ConfigError(f"Cannot parse extra arguments {extra_args!r}: {e}") from e
    args.extend(program_args)

    if mail_to is not None:
        recipients = split_recipients(mail_to)
    else:
        recipients = file_config.get("mail_to", [])

    resolved_state_dir = state_dir or file_config.get("state_dir")
    expire_spec = expire if expire is not None else file_config.get("expire")

    slack_webhook_url = None
    if file_config.get("slack_webhook_env"):
        slack_webhook_url = environ.get(file_config["slack_webhook_env"])

    config = WrapperConfig(
        program=program,
        identity=identity,
        state_dir=Path(resolved_state_dir)
        if resolved_state_dir
        else default_state_dir(identity),
        hostname=hostname,
        program_args=args,
        mail_to=recipients,
        subject=subject
        or file_config.get("subject")
        or default_subject(identity, hostname),
        expire_seconds=expiration_threshold(expire_spec),
        slack_webhook_url=slack_webhook_url,
        smtp=smtp_settings(file_config.get("smtp", {}), environ),
    )

    logger.debug(
        "Configured %s: state_dir=%s mail_to=%s expire=%s",
        config.identity,
        config.state_dir,
        config.mail_to or "-",
        config.expire_seconds,
    )
    return config
