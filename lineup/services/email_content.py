"""Rendering of the lineup email.

Everything here is pure: the functions take the show, its items and the
already computed fields and return strings, so the output is fully determined
by the inputs. Show and item arguments only need the attributes used below,
which keeps the renderer usable with ORM rows or plain objects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, Mapping

TOKEN_PATTERN = re.compile(r"{{\s*(\w+)\s*}}")

_LIST_OPEN = "<ul style='direction: rtl; text-align: right; padding-right: 20px; margin-right: 0;'>"
_LIST_ITEM = '<li style="direction: rtl; text-align: right;">{text}</li>'
_LIST_CLOSE = "</ul>"

_LINK_TEMPLATE = """
    <div style="text-align: center; margin-top: 30px; margin-bottom: 30px;">
      <a href="{url}" style="display: inline-block; background-color: #5e0e1c; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; font-weight: bold;">לצפייה בליינאפ</a>
    </div>"""

_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html dir="rtl" lang="he">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta http-equiv="Content-Type" content="text/html; charset=UTF-8">
  <title>{subject}</title>
  <style>
    body, table, td, p, a, li, blockquote {{
      -webkit-text-size-adjust: 100%;
      -ms-text-size-adjust: 100%;
      direction: rtl;
      text-align: right;
      font-family: Arial, sans-serif;
    }}
    body {{
      height: 100% !important;
      margin: 0 !important;
      padding: 0 !important;
      width: 100% !important;
    }}
    table, td {{
      mso-table-lspace: 0pt;
      mso-table-rspace: 0pt;
    }}
    img {{
      -ms-interpolation-mode: bicubic;
    }}
    a {{
      color: #0000FF;
    }}
    .content {{
      padding: 20px;
      max-width: 600px;
      margin: 0 auto;
    }}
  </style>
</head>
<body>
  <div class="content">
    {body}
  </div>
</body>
</html>"""


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str


def _clean(value: str | None) -> str:
    return (value or "").strip()


def collect_interviewees(items: Iterable[object]) -> list[tuple[str, str]]:
    """Return unique ``(name, title)`` pairs in the order they first appear.

    An item contributes its interviewees when it has any. Otherwise a regular
    content item contributes itself; breaks, notes and dividers contribute
    nothing.
    """

    seen: set[tuple[str, str]] = set()
    collected: list[tuple[str, str]] = []

    for item in items or ():
        interviewees = list(getattr(item, "interviewees", None) or ())
        if interviewees:
            candidates = [(_clean(i.name), _clean(getattr(i, "title", None))) for i in interviewees]
        elif not (
            getattr(item, "is_break", False)
            or getattr(item, "is_note", False)
            or getattr(item, "is_divider", False)
        ):
            candidates = [(_clean(getattr(item, "name", None)), _clean(getattr(item, "title", None)))]
        else:
            continue

        for pair in candidates:
            if not pair[0] or pair in seen:
                continue
            seen.add(pair)
            collected.append(pair)

    return collected


def build_interviewees_list(items: Iterable[object]) -> str:
    entries = []
    for name, title in collect_interviewees(items):
        text = f"{name}, {title}" if title else name
        entries.append(_LIST_ITEM.format(text=text))
    return _LIST_OPEN + "".join(entries) + _LIST_CLOSE


def build_lineup_url(base_url: str, show_id: str) -> str:
    return f"{base_url.rstrip('/')}/print/{show_id}"


def build_lineup_link(base_url: str, show_id: str) -> str:
    """HTML button pointing at the printable lineup of the show."""

    return _LINK_TEMPLATE.format(url=build_lineup_url(base_url, show_id))


def format_show_date(value: date | datetime | str | None) -> str:
    """Short Hebrew-locale date, e.g. ``19.10.2026``."""

    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return f"{value.day}.{value.month}.{value.year}"


def format_show_time(value: time | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return str(value)[:5]


def render_template(
    template: str | None,
    show: object,
    items: Iterable[object],
    formatted_date: str,
    lineup_link: str,
) -> str:
    """Substitute the lineup tokens in ``template``.

    Substitution is a single pass over the template, so a value that happens
    to contain a token is never expanded again. Unknown tokens are kept.
    """

    values: Mapping[str, str] = {
        "show_name": getattr(show, "name", None) or "",
        "show_date": formatted_date or "",
        "show_time": format_show_time(getattr(show, "time", None)),
        "interviewees_list": build_interviewees_list(items),
        "lineup_link": lineup_link,
    }

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values:
            return values[key]
        return match.group(0)

    return TOKEN_PATTERN.sub(_replace, template or "")


def wrap_email_html(body: str, subject: str) -> str:
    return _DOCUMENT_TEMPLATE.format(subject=subject, body=body)


def prepare_email_content(
    show: object,
    items: Iterable[object],
    subject_template: str | None,
    body_template: str | None,
    *,
    base_url: str,
) -> EmailContent:
    items = list(items or ())
    formatted_date = format_show_date(getattr(show, "date", None))
    lineup_link = build_lineup_link(base_url, getattr(show, "id"))

    subject = render_template(subject_template, show, items, formatted_date, lineup_link)
    body = render_template(body_template, show, items, formatted_date, lineup_link)
    return EmailContent(subject=subject, html=wrap_email_html(body, subject))


__all__ = [
    "EmailContent",
    "build_interviewees_list",
    "build_lineup_link",
    "build_lineup_url",
    "collect_interviewees",
    "format_show_date",
    "format_show_time",
    "prepare_email_content",
    "render_template",
    "wrap_email_html",
]
