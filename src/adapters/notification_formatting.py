"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel. All output is Telegram HTML.
"""

from __future__ import annotations

import html
from typing import Iterable, List, Optional, Tuple

from core.config import BrandingConfig
from core.models import JobCandidate

FOOTER_RULE = "────────"


def escape_attr(value: str) -> str:
    """Escape a value placed inside a double-quoted HTML attribute."""

    return html.escape(value, quote=True)


def _footer(branding: BrandingConfig) -> List[str]:
    lines: List[str] = []
    if branding.group_url:
        lines.append(f"<b>{html.escape(branding.group_title)}</b>")
        lines.append(f"<a href=\"{escape_attr(branding.group_url)}\">Join group</a>")
    if branding.promo_text:
        lines.extend(["", "<b>Promotion</b>", html.escape(branding.promo_text)])
        if branding.promo_url:
            lines.append(
                f"<a href=\"{escape_attr(branding.promo_url)}\">{html.escape(branding.promo_button_text)}</a>"
            )
    return lines


def format_job_message(job: JobCandidate, branding: Optional[BrandingConfig] = None) -> str:
    """Create the HTML body used for channel posts and subscriber alerts."""

    parts = [
        f"<b>{html.escape(job.title)}</b>",
        f"<b>{html.escape(job.company)}</b>",
        f"<i>{html.escape(job.source)}</i>",
        "",
        f"<a href=\"{escape_attr(job.link)}\">View &amp; Apply</a>",
    ]
    footer = _footer(branding) if branding else []
    if footer:
        parts.extend(["", FOOTER_RULE, *footer])
    return "\n".join(parts)


def job_button_rows(job: JobCandidate, branding: Optional[BrandingConfig] = None) -> List[List[Tuple[str, str]]]:
    """URL button rows as ``(text, url)`` pairs: Apply, then group and promo links."""

    rows = [[("Apply", job.link)]]
    if branding and branding.group_url:
        rows.append([(branding.group_title, branding.group_url)])
    if branding and branding.promo_url and branding.promo_button_text:
        rows.append([(branding.promo_button_text, branding.promo_url)])
    return rows


def format_job_summary(job: JobCandidate) -> str:
    """Compact HTML block used in search results."""

    return (
        f"<b>{html.escape(job.company)}</b>\n"
        f"{html.escape(job.title)}\n"
        f"<i>{html.escape(job.source)}</i>\n"
        f"<a href=\"{escape_attr(job.link)}\">Open</a>"
    )


def format_job_list(title: str, jobs: Iterable[JobCandidate]) -> str:
    blocks = [format_job_summary(job) for job in jobs]
    return f"<b>{html.escape(title)}</b>\n\n" + "\n\n".join(blocks)


def format_keywords(keywords: Iterable[str]) -> str:
    return "\n".join(f"- {html.escape(keyword)}" for keyword in keywords)


def format_mention(user_id: int, name: str) -> str:
    return f"<a href=\"tg://user?id={user_id}\">{html.escape(name or 'there')}</a>"
