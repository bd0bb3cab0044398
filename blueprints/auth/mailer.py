from __future__ import annotations
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from config import as_bool

log = logging.getLogger(__name__)


class Mailer(Protocol):
    """Канал уведомлений: отправили и забыли."""

    def send(self, to: str, subject: str, body: str) -> None:
        ...


class LogMailer:
    """Для dev/тестов: письмо просто пишется в лог."""

    def send(self, to: str, subject: str, body: str) -> None:
        log.info("mail to %s: %s", to, subject, extra={"event": "mail_logged"})


class SmtpMailer:
    def __init__(self, host: str, port: int = 587, username: str | None = None,
                 password: str | None = None, sender: str = "no-reply@school.local",
                 use_tls: bool = True, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(msg)


def mailer_from_config(cfg) -> Mailer:
    host = cfg.get("MAIL_SERVER")
    if not host:
        return LogMailer()
    return SmtpMailer(
        host=host,
        port=int(cfg.get("MAIL_PORT") or 587),
        username=cfg.get("MAIL_USERNAME"),
        password=cfg.get("MAIL_PASSWORD"),
        sender=cfg.get("MAIL_SENDER", "no-reply@school.local"),
        use_tls=as_bool(cfg.get("MAIL_USE_TLS"), True),
    )


def send_quietly(mailer: Mailer, to: str, subject: str, body: str) -> bool:
    """Ошибка доставки не должна ронять запрос: только логируем."""
    try:
        mailer.send(to, subject, body)
        return True
    except (smtplib.SMTPException, OSError):
        log.exception("mail delivery failed", extra={"event": "mail_failed"})
        return False
