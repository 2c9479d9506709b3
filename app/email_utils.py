"""
Small SMTP helpers shared by routes and workers.
"""
from __future__ import annotations

import os
import smtplib
from email.mime.text import MIMEText


def _effective_from(email_from: str | None, email_user: str | None, smtp_server: str) -> str:
    # Gmail rewrites or rejects a From that differs from the authenticated user.
    if "gmail" in (smtp_server or "").lower() and email_user:
        return email_user
    return email_from or email_user or "noreply@bravapress.com"


def send_text_email(to_email: str, subject: str, body: str) -> None:
    email_user = os.getenv("EMAIL_USER")
    email_password = os.getenv("EMAIL_PASSWORD")
    email_from = os.getenv("EMAIL_FROM")
    smtp_server = os.getenv("SMTP_SERVER", "smtp.gmail.com")
    smtp_port = int(os.getenv("SMTP_PORT", "587"))
    smtp_timeout = float(os.getenv("SMTP_TIMEOUT_SECONDS", "30"))

    if not (email_user and email_password):
        raise RuntimeError("Email credentials not configured. Set EMAIL_USER and EMAIL_PASSWORD.")
    if not to_email or "@" not in to_email:
        raise ValueError(f"Invalid recipient address: {to_email!r}")

    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = _effective_from(email_from, email_user, smtp_server)
    msg["To"] = to_email

    with smtplib.SMTP(smtp_server, smtp_port, timeout=smtp_timeout) as server:
        server.starttls()
        server.login(email_user, email_password)
        server.sendmail(msg["From"], [to_email], msg.as_string())
