"""
Notification email templates for PerfectFit.

Clients strip <style> blocks, so every rule is inline. A template returns
(subject, html_body, text_body); the HTML and text parts say the same thing.
"""

from __future__ import annotations

from html import escape

APP_NAME = "PerfectFit"

PAGE = "#F1F5F9"
CARD = "#FFFFFF"
INK = "#0F172A"
MUTED = "#64748B"
FLAME = "#EA580C"
RULE = "#E2E8F0"

FONT_STACK = "-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif"


def _page(title: str, body: str, footer: str) -> str:
    """Single-column card centred on a tinted page."""
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="en"><head><meta charset="UTF-8"><title>{escape(title)}</title></head>\n'
        f'<body style="margin:0;padding:32px 12px;background:{PAGE};font-family:{FONT_STACK};">\n'
        f'<div style="max-width:560px;margin:0 auto;background:{CARD};border:1px solid {RULE};'
        f'border-radius:16px;padding:36px 28px;color:{INK};">\n'
        f'<div style="font-size:13px;letter-spacing:2px;text-transform:uppercase;color:{MUTED};'
        f'margin-bottom:20px;">{APP_NAME}</div>\n'
        f"{body}\n"
        f'<p style="border-top:1px solid {RULE};margin:28px 0 0;padding-top:16px;'
        f'font-size:12px;line-height:1.5;color:{MUTED};">{footer}</p>\n'
        "</div>\n</body></html>"
    )


def _cta(url: str, label: str) -> str:
    return (
        f'<p style="text-align:center;margin:28px 0;">'
        f'<a href="{escape(url, quote=True)}" style="display:inline-block;background:{FLAME};color:#FFFFFF;'
        f'font-weight:600;font-size:16px;text-decoration:none;padding:14px 36px;border-radius:999px;">'
        f"{escape(label)}</a></p>"
    )


def _hours(hours_remaining: int) -> str:
    return "1 hour" if hours_remaining == 1 else f"{hours_remaining} hours"


def _days(streak_length: int) -> str:
    return "1 day" if streak_length == 1 else f"{streak_length} days"


def streak_expiry_email(
    display_name: str | None,
    streak_length: int,
    hours_remaining: int,
    play_url: str,
) -> tuple[str, str, str]:
    """
    Sent a few hours before the player's local day ends with a live streak.

    Returns:
        (subject, html_body, text_body)
    """
    name = display_name or "Player"
    subject = f"Your {streak_length}-day streak ends in {_hours(hours_remaining)}"

    body = (
        f'<p style="font-size:16px;line-height:1.6;margin:0 0 16px;">Hi {escape(name)},</p>\n'
        f'<div style="text-align:center;margin:8px 0 20px;">'
        f'<div style="font-size:48px;font-weight:800;color:{FLAME};line-height:1;">{streak_length}</div>'
        f'<div style="font-size:14px;color:{MUTED};">day streak</div></div>\n'
        f'<p style="font-size:16px;line-height:1.6;margin:0;">'
        f"You have played {_days(streak_length)} in a row. Finish one game in the next "
        f"<strong>{_hours(hours_remaining)}</strong> to keep it going.</p>\n"
        f"{_cta(play_url, 'Play now')}"
    )
    html_body = _page(
        subject,
        body,
        footer=(
            f"A streak freeze token covers one missed day. You get this reminder because "
            f"streak reminders are on for your {APP_NAME} account."
        ),
    )
    text_body = (
        f"Hi {name},\n\n"
        f"You have played {_days(streak_length)} in a row. "
        f"Finish one game in the next {_hours(hours_remaining)} to keep your streak going:\n\n"
        f"{play_url}\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, html_body, text_body
