"""
Notifications - Email, Slack webhook and stdout fallback.

This module delivers a report once the change detector has decided a run
is worth reporting. It never decides *whether* to report.
"""

import logging
import smtplib
import sys
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

import requests

from checkwrap.health.config import SmtpSettings, WrapperConfig
from checkwrap.health.detector import Verdict
from checkwrap.health.store import Resolution

logger = logging.getLogger(__name__)


CHANNEL_EMAIL = "email"
CHANNEL_SLACK = "slack"
CHANNEL_STDOUT = "stdout"


def cleared_message(identity: str, hostname: str) -> str:
    """Fixed notice sent when a previously reported problem goes away."""
    return (
        f"Previously reported problems from {identity} on {hostname} "
        "have now cleared.\n"
    )


def report_body(resolution: Resolution, config: WrapperConfig) -> bytes:
    """
    Choose what to send for a reportable run.

    Args:
        resolution: Result of resolving the run
        config: Wrapper configuration

    Returns:
        Cleared-error notice, or the new saved output
    """
    if resolution.verdict is Verdict.CLEARED_ERROR:
        return cleared_message(config.identity, config.hostname).encode()
    return resolution.contents


def notify(resolution: Resolution, config: WrapperConfig) -> str:
    """
    Send a report via email, Slack webhook or stdout.

    Email is used when recipients are configured, then a Slack webhook.
    When neither is configured, or delivery fails, the report is written
    to stdout so it is never lost.

    Args:
        resolution: Result of resolving the run; must be reportable
        config: Wrapper configuration

    Returns:
        Channel the report went out on ("email", "slack" or "stdout")
    """
    if not resolution.verdict.reportable:
        raise ValueError(f"Verdict {resolution.verdict.value} is not reportable")

    body = report_body(resolution, config)

    if config.mail_to:
        if _send_email(config.mail_to, config.subject, body, config.smtp):
            logger.info("Sent email report to %s", ", ".join(config.mail_to))
            return CHANNEL_EMAIL

    if config.slack_webhook_url:
        if _send_slack_webhook(config.slack_webhook_url, config.subject, body):
            logger.info("Sent Slack report for %s", config.identity)
            return CHANNEL_SLACK

    _print_stdout(body)
    return CHANNEL_STDOUT


def _send_email(
    recipients: List[str], subject: str, body: bytes, smtp: SmtpSettings
) -> bool:
    """
    Send the report by SMTP.

    Args:
        recipients: Recipient addresses
        subject: Mail subject
        body: Report bytes, decoded as UTF-8 with replacement
        smtp: Connection settings

    Returns:
        True if sent successfully, False otherwise
    """
    msg = MIMEMultipart()
    msg["From"] = smtp.sender
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject
    msg.attach(MIMEText(body.decode("utf-8", errors="replace"), "plain", "utf-8"))

    try:
        server = smtplib.SMTP(smtp.host, smtp.port)
        try:
            # Enable TLS if credentials provided
            if smtp.user and smtp.password:
                server.starttls()
                server.login(smtp.user, smtp.password)
            server.sendmail(smtp.sender, recipients, msg.as_string())
        finally:
            server.quit()
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email: %s", e, exc_info=True)
        return False


def _send_slack_webhook(webhook_url: str, subject: str, body: bytes) -> bool:
    """
    Send the report to Slack via Incoming Webhook.

    Args:
        webhook_url: Slack webhook URL
        subject: Report title
        body: Report bytes

    Returns:
        True if sent successfully, False otherwise
    """
    payload = {
        "username": "checkwrap",
        "text": f"*{subject}*",
        "attachments": [
            {
                "color": "#ff9900",
                "text": body.decode("utf-8", errors="replace"),
                "footer": "checkwrap",
                "ts": int(time.time()),
            }
        ],
    }

    try:
        response = requests.post(
            webhook_url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=10,
        )
        response.raise_for_status()
        return True
    except requests.RequestException as e:
        logger.error("Failed to send Slack webhook: %s", e, exc_info=True)
        return False


def _print_stdout(body: bytes) -> None:
    """Write the report bytes unchanged to stdout."""
    sys.stdout.flush()
    sys.stdout.buffer.write(body)
    sys.stdout.buffer.flush()
