"""
Text helpers for putting sheet values into rendered markdown.

Every field of a report comes from a spreadsheet any staff member can edit,
so it is treated as plain text: HTML is escaped and markdown syntax is
neutralized before it reaches st.markdown / st.caption / alerts.
"""

from __future__ import annotations

import html
import re

# Characters markdown (and Streamlit's $...$ math) gives meaning to.
_MARKDOWN_SPECIAL = re.compile(r"([\\`*_{}\[\]()#+\-.!|~$:])")


def escape_markdown(value: object) -> str:
    """Plain text safe to interpolate into markdown, with or without HTML enabled."""
    text = _MARKDOWN_SPECIAL.sub(r"\\\1", str(value or ""))
    return html.escape(text, quote=True)
