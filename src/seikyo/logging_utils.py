from __future__ import annotations

from copy import copy, deepcopy
from typing import Any
from urllib.parse import unquote, unquote_plus

from uvicorn.config import LOGGING_CONFIG
from uvicorn.logging import AccessFormatter as UvicornAccessFormatter

__all__ = ["ChapterPathAccessFormatter", "decode_request_path", "build_uvicorn_log_config"]

# Position of the request target in uvicorn's access-log args.
_PATH_ARG = 2


def decode_request_path(value: str) -> str:
    """
    Percent-decode a request target for logging.

    The path keeps literal ``+`` (chapter ids may contain it); the query string
    of ``/api/search?q=...`` is decoded form-style so spaces read as spaces.
    """
    path, separator, query = value.partition("?")
    decoded = unquote(path, encoding="utf-8", errors="replace")
    if separator:
        decoded += separator + unquote_plus(query, encoding="utf-8", errors="replace")
    return decoded


class ChapterPathAccessFormatter(UvicornAccessFormatter):
    """Access formatter that logs scripture paths and search queries as readable text."""

    def formatMessage(self, record):  # type: ignore[override]
        args = record.args
        if isinstance(args, tuple) and len(args) > _PATH_ARG and isinstance(args[_PATH_ARG], str):
            record = copy(record)
            record.args = args[:_PATH_ARG] + (decode_request_path(args[_PATH_ARG]),) + args[_PATH_ARG + 1 :]
        return super().formatMessage(record)


def build_uvicorn_log_config(use_colors: bool | None = None) -> dict[str, Any]:
    """Uvicorn's default logging config with readable access paths.

    ``use_colors`` forces colour on or off for both formatters; ``None`` leaves
    uvicorn's terminal detection alone.
    """
    config = deepcopy(LOGGING_CONFIG)
    formatters = config.get("formatters", {})
    for name, formatter in formatters.items():
        if not isinstance(formatter, dict):
            continue
        if name == "access":
            formatter["()"] = f"{__name__}.ChapterPathAccessFormatter"
        if use_colors is not None:
            formatter["use_colors"] = use_colors
    return config
