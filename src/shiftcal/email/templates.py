"""
Email templates for ShiftCal.

All templates use inline CSS for maximum email client compatibility.
Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

BG_PAGE = "#F4F6FA"
BG_CARD = "#FFFFFF"
ACCENT = "#3B82F6"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#6B7280"
BORDER = "#E5E7EB"


def _base_layout(content: str, app_name: str = "ShiftCal") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="560" style="max-width: 560px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 22px; font-weight: 700; color: {TEXT_PRIMARY};">{app_name}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                This email was sent by {app_name}.<br>
                                If you didn't expect this email, you can safely ignore it.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def verification_code(code: str, ttl_minutes: int = 10) -> tuple[str, str, str]:
    """Registration one-time code."""
    subject = f"Your ShiftCal verification code: {code}"
    html = _base_layout(f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 20px; margin: 0 0 16px;">Confirm your email</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 15px; line-height: 1.6; margin: 0 0 24px;">
    Enter this code to finish creating your account. It expires in {ttl_minutes} minutes.
</p>
<p style="font-size: 32px; font-weight: 700; letter-spacing: 8px; color: {ACCENT}; text-align: center; margin: 0;">{escape(code)}</p>""")
    text = (
        "Confirm your email\n\n"
        f"Your ShiftCal verification code is {code}.\n"
        f"It expires in {ttl_minutes} minutes.\n"
    )
    return subject, html, text


def share_invite(owner_email: str, app_url: str) -> tuple[str, str, str]:
    """Notification that someone shared their calendar with the recipient."""
    subject = f"{owner_email} shared their calendar with you"
    owner = escape(owner_email)
    url = escape(app_url, quote=True)
    html = _base_layout(f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 20px; margin: 0 0 16px;">A calendar was shared with you</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 15px; line-height: 1.6; margin: 0 0 24px;">
    <strong style="color: {TEXT_PRIMARY};">{owner}</strong> gave you read-only access to their shift calendar.
</p>
<p style="text-align: center; margin: 0;">
    <a href="{url}" style="display: inline-block; background-color: {ACCENT}; color: #FFFFFF; text-decoration: none; padding: 12px 24px; border-radius: 8px; font-weight: 600;">Open ShiftCal</a>
</p>""")
    text = (
        "A calendar was shared with you\n\n"
        f"{owner_email} gave you read-only access to their shift calendar.\n"
        f"Open ShiftCal: {app_url}\n"
    )
    return subject, html, text
