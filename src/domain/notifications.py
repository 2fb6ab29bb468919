"""Outbound email composition."""

from jinja2 import Template

from .ports import MailMessage

_VERIFY_SUBJECT = "Welcome to {{ brand }} - Verify Your Email"
_VERIFY_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #4F46E5;">Welcome to {{ brand }}{% if name %}, {{ name }}{% endif %}!</h1>
  <p>Please verify your email address to get started.</p>
  <p style="text-align: center;">
    <a href="{{ link }}" style="background-color: #4F46E5; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">Verify Email Address</a>
  </p>
  <p>Or copy and paste this link into your browser:</p>
  <p style="word-break: break-all;">{{ link }}</p>
  {% if code %}<p>Or enter this code: <strong style="letter-spacing: 0.2em;">{{ code }}</strong></p>{% endif %}
  <p style="color: #6B7280; font-size: 14px;">This link will expire in {{ minutes }} minutes.</p>
  <p style="color: #6B7280; font-size: 14px;">If you didn't create an account, you can safely ignore this email.</p>
</div>
"""

_RESET_SUBJECT = "Password Reset Request"
_RESET_HTML = """
<h1>Password Reset</h1>
<p>You requested a password reset. Click the link below to reset your password:</p>
<a href="{{ link }}">{{ link }}</a>
<p>This link will expire in {{ minutes }} minutes.</p>
<p>If you didn't request this, you can safely ignore this email.</p>
"""


def _render(source: str, **variables) -> str:
    return Template(source, autoescape=True).render(**variables).strip()


def verification_link(frontend_url: str, token: str) -> str:
    return f"{frontend_url.rstrip('/')}/verify-email/{token}"


def reset_link(frontend_url: str, token: str) -> str:
    return f"{frontend_url.rstrip('/')}/reset-password/{token}"


def verification_message(
    to: str,
    link: str,
    minutes: int,
    code: str | None = None,
    name: str | None = None,
    brand: str = "DUK",
) -> MailMessage:
    return MailMessage(
        to=to,
        subject=_render(_VERIFY_SUBJECT, brand=brand),
        html=_render(_VERIFY_HTML, brand=brand, name=name, link=link, code=code, minutes=minutes),
    )


def reset_message(to: str, link: str, minutes: int) -> MailMessage:
    return MailMessage(
        to=to,
        subject=_RESET_SUBJECT,
        html=_render(_RESET_HTML, link=link, minutes=minutes),
    )
