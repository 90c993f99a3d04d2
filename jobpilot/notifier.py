"""Deliver notifications: Telegram bot, e-mail, or the log as a last resort."""
from __future__ import annotations

import html
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable

import requests

from jobpilot.config import Settings
from jobpilot.identity import Account
from jobpilot.log import get_logger
from jobpilot.retry import retry

log = get_logger(__name__)

TELEGRAM_API = "https://api.telegram.org"

AccountLookup = Callable[[str], "Account | None"]


def _inline(text: str) -> str:
    """Inline markdown (bold, italic, code, links) to HTML; input already escaped."""
    text = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", text)
    text = re.sub(r"(?<![\w/])_(.+?)_(?![\w/])", r"<i>\1</i>", text)
    text = re.sub(r"`(.+?)`", r"<code>\1</code>", text)
    text = re.sub(r"\[([^\]]+)\]\(([^)]+)\)", r'<a href="\2">\1</a>', text)
    return text


def to_telegram_html(md: str) -> str:
    lines = []
    for line in md.split("\n"):
        stripped = line.strip()
        if stripped.startswith("- "):
            stripped = "• " + stripped[2:]
        lines.append(_inline(html.escape(stripped, quote=False)))
    return "\n".join(lines)


def to_email_html(md: str) -> str:
    parts: list[str] = []
    for line in md.split("\n"):
        stripped = html.escape(line.strip(), quote=False)
        if not stripped:
            parts.append("<br>")
        elif stripped.startswith("- "):
            parts.append(f'<div style="margin:2px 0 2px 16px">• {_inline(stripped[2:])}</div>')
        else:
            parts.append(f"<p style='margin:4px 0'>{_inline(stripped)}</p>")
    body = "\n".join(parts)
    return (
        "<div style=\"font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;"
        f"max-width:700px;margin:0 auto;padding:16px;color:#333\">\n{body}\n"
        '<hr style="border:none;border-top:1px solid #e0e0e0;margin:20px 0 8px">'
        '<p style="font-size:11px;color:#999">Sent by jobpilot</p>\n</div>'
    )


class LogNotifier:
    def send(self, user_identity: str, message: str) -> bool:
        log.info("Notification for %s:\n%s", user_identity, message)
        return True


class TelegramNotifier:
    def __init__(self, bot_token: str, lookup: AccountLookup, *, timeout: float = 10.0,
                 session: requests.Session | None = None) -> None:
        self.bot_token = bot_token
        self.lookup = lookup
        self.timeout = timeout
        self.session = session or requests.Session()

    def _chat_id(self, user_identity: str) -> str | None:
        account = self.lookup(user_identity)
        return account.telegram_chat_id if account and account.telegram_chat_id else None

    def send(self, user_identity: str, message: str) -> bool:
        if not self.bot_token:
            log.debug("Telegram bot token not configured")
            return False
        try:
            chat_id = self._chat_id(user_identity)
        except Exception as exc:
            log.warning("Could not resolve Telegram chat for %s: %s", user_identity, exc)
            return False
        if not chat_id:
            log.info("No Telegram chat id for %s", user_identity)
            return False
        try:
            r = self.session.post(
                f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": chat_id,
                    "text": to_telegram_html(message),
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                },
                timeout=self.timeout,
            )
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            log.warning("Telegram send failed for %s: %s", user_identity, exc)
            return False
        if not data.get("ok"):
            log.warning("Telegram API error for %s: %s", user_identity, data.get("description", "unknown"))
            return False
        return True


@retry(max_attempts=3, base_delay=3.0, retryable=(smtplib.SMTPException, OSError))
def _smtp_send(
    host: str, port: int, user: str, password: str,
    from_addr: str, to_addr: str, msg: MIMEMultipart,
) -> None:
    with smtplib.SMTP(host, port, timeout=20) as server:
        server.starttls()
        server.login(user, password)
        server.sendmail(from_addr, [to_addr], msg.as_string())


class EmailNotifier:
    def __init__(self, host: str, port: int, user: str, password: str, from_email: str = "",
                 lookup: AccountLookup | None = None) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email or user
        self.lookup = lookup

    def _address(self, user_identity: str) -> str | None:
        if "@" in user_identity:
            return user_identity
        account = self.lookup(user_identity) if self.lookup else None
        return account.email if account else None

    def send(self, user_identity: str, message: str) -> bool:
        to_addr = self._address(user_identity)
        if not to_addr:
            log.info("No e-mail address for %s", user_identity)
            return False
        first = message.strip().split("\n", 1)[0]
        subject = re.sub(r"[*_`]", "", first)[:120] or "jobpilot update"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_addr
        msg.attach(MIMEText(message, "plain", "utf-8"))
        msg.attach(MIMEText(to_email_html(message), "html", "utf-8"))
        try:
            _smtp_send(self.host, self.port, self.user, self.password, self.from_email, to_addr, msg)
        except (smtplib.SMTPException, OSError) as exc:
            log.error("Email to %s failed: %s", to_addr, exc)
            return False
        log.info("Email sent to %s", to_addr)
        return True


class FanoutNotifier:
    """Sends through every channel; succeeds if any one of them did."""

    def __init__(self, notifiers: list) -> None:
        self.notifiers = notifiers

    def send(self, user_identity: str, message: str) -> bool:
        delivered = False
        for n in self.notifiers:
            try:
                delivered = n.send(user_identity, message) or delivered
            except Exception as exc:
                log.warning("%s raised while sending: %s", type(n).__name__, exc)
        return delivered


def build_notifier(settings: Settings, lookup: AccountLookup):
    channels: list = []
    if settings.telegram_bot_token:
        channels.append(TelegramNotifier(settings.telegram_bot_token, lookup))
    if settings.smtp_host and settings.smtp_user and settings.smtp_password:
        channels.append(EmailNotifier(
            settings.smtp_host, settings.smtp_port, settings.smtp_user,
            settings.smtp_password, settings.from_email, lookup,
        ))
    if not channels:
        log.info("No Telegram or SMTP settings; notifications go to the log")
        return LogNotifier()
    return channels[0] if len(channels) == 1 else FanoutNotifier(channels)
