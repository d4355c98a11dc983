"""
Email delivery through Resend, plus the HTML bodies of the crew notifications.
"""
from datetime import datetime
from html import escape
from typing import NamedTuple, Optional

import resend

from pickleball_crew.core.config import settings
from pickleball_crew.core.logging import logger
from pickleball_crew.services.pricing import to_venue_local


class EmailMessage(NamedTuple):
    subject: str
    html: str


def init_resend():
    resend.api_key = settings.RESEND_API_KEY


def send_email(to_email: str, subject: str, html: str) -> dict:
    """
    Send one email to one recipient.

    Returns:
        ``{"success": True, "id": ...}`` or ``{"success": False, "error": ...}``
    """
    init_resend()
    params = {
        "from": settings.EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "html": html,
    }
    try:
        response = resend.Emails.send(params)
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return {"success": False, "error": str(e)}
    return {"success": True, "id": response.get("id") if isinstance(response, dict) else None}


def format_when(date_time: datetime) -> str:
    return to_venue_local(date_time).strftime("%A, %B %d, %Y at %I:%M %p")


def session_url(session_id) -> str:
    return f"{settings.APP_URL.rstrip('/')}/session/{session_id}"


def _layout(heading: str, rows: str, button_label: str, link: str, footer: str = "") -> str:
    footer_html = f'<p style="text-align: center; color: #6b7280; font-size: 14px;">{footer}</p>' if footer else ""
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #0f766e; text-align: center;">{heading}</h1>
        <div style="background: #f0fdfa; border-radius: 8px; padding: 20px; margin: 20px 0;">
            {rows}
        </div>
        <div style="text-align: center; margin: 30px 0;">
            <a href="{escape(link)}"
               style="background: #0f766e; color: white; padding: 15px 30px; text-decoration: none; border-radius: 8px; font-weight: bold; display: inline-block;">
                {button_label}
            </a>
        </div>
        {footer_html}
    </div>
    """


def _row(label: str, value: str) -> str:
    return f'<div style="margin: 15px 0;"><strong>{label}:</strong> {value}</div>'


def build_session_created_email(
    session_id,
    title: str,
    date_time: datetime,
    location: str,
    creator_name: Optional[str],
    cost_per_person: float,
) -> EmailMessage:
    rows = "".join([
        f'<h2 style="color: #134e4a; margin-top: 0;">{escape(title)}</h2>',
        _row("When", escape(format_when(date_time))),
        _row("Where", escape(location)),
        _row("Cost", f"${cost_per_person:.2f} per person (splits as more join!)"),
        _row("Created by", escape(creator_name or "Someone")),
    ])
    html = _layout(
        "New Pickleball Session!",
        rows,
        "Join This Session",
        session_url(session_id),
        footer='Click "Join This Session" to RSVP and see who else is playing!',
    )
    return EmailMessage(subject=f"New Game: {title}", html=html)


def build_rsvp_confirmed_email(
    session_id,
    title: str,
    date_time: datetime,
    location: str,
    member_name: Optional[str],
    yes_count: int,
    max_players: int,
) -> EmailMessage:
    who = escape(member_name or "Someone")
    rows = "".join([
        f'<h2 style="color: #134e4a; margin-top: 0;">{who} joined {escape(title)}</h2>',
        _row("When", escape(format_when(date_time))),
        _row("Where", escape(location)),
        _row("Players", f"{yes_count}/{max_players} confirmed"),
    ])
    html = _layout("Someone joined your game!", rows, "View Session", session_url(session_id))
    return EmailMessage(subject=f"{member_name or 'Someone'} joined {title}", html=html)


def build_session_updated_email(
    session_id,
    title: str,
    date_time: datetime,
    location: str,
    cost_per_person: float,
) -> EmailMessage:
    rows = "".join([
        f'<h2 style="color: #134e4a; margin-top: 0;">{escape(title)}</h2>',
        _row("When", escape(format_when(date_time))),
        _row("Where", escape(location)),
        _row("Cost", f"${cost_per_person:.2f} per person"),
    ])
    html = _layout("Session updated", rows, "View Session", session_url(session_id))
    return EmailMessage(subject=f"Updated: {title}", html=html)
