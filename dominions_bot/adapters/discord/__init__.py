"""Discord adapter: message helpers and embed builders."""

from __future__ import annotations

from .builders import build_details_embed, details_lines
from .handlers import error_message

__all__ = ["build_details_embed", "details_lines", "error_message"]
