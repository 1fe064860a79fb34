from __future__ import annotations

import base64
import binascii
import os
import secrets
from dataclasses import dataclass
from html import escape
from pathlib import Path
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from .blocks import segment_blocks
from .glossary import build_glossary_index
from .inline import compose_inline, serialize_inline_nodes
from .library import (
    Chapter,
    find_chapter,
    list_all_scriptures,
    load_scripture,
    search_scriptures,
)
from .render import render_chapter_html

__all__ = ["WebConfig", "create_app", "check_basic_auth"]

AUTH_REALM = 'Basic realm="Restricted"'
AUTH_MISSING = "認証が必要です"
AUTH_MALFORMED = "認証形式が無効です"
AUTH_REJECTED = "認証情報が無効です"


@dataclass(slots=True)
class WebConfig:
    root: Path
    username: str | None = None
    password: str | None = None
    search_limit: int = 50


PAGE_HTML = """<!DOCTYPE html>
<html lang="ja">
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>
    body {{
      margin: 0;
      background: #fafaf9;
      color: #292524;
      font-family: "Hiragino Mincho ProN", "Yu Mincho", serif;
    }}
    header, main, footer {{
      max-width: 56rem;
      margin: 0 auto;
      padding: 1rem 1.5rem;
    }}
    a {{ color: #b45309; text-decoration: none; }}
    .vertical {{
      writing-mode: vertical-rl;
      height: 70vh;
      min-height: 500px;
      overflow-x: auto;
      line-height: 2;
    }}
    .citation-header {{
      font-size: 1rem;
      color: #92400e;
      border-top: 2px solid #f59e0b;
      padding-top: 0.5rem;
    }}
    blockquote.citation {{
      margin: 0;
      background: #fffbeb;
      border-top: 2px solid #fcd34d;
      padding: 0.75rem 0.5rem;
    }}
    .glossary {{
      cursor: help;
      border-bottom: 1px dotted #a8a29e;
    }}
    .glossary-list dt {{ font-weight: 600; color: #b45309; }}
    .glossary-list dd {{ margin: 0 0 0.75rem; font-size: 0.9rem; }}
    nav.chapters {{ display: flex; justify-content: space-between; gap: 1rem; }}
  </style>
</head>
<body>
  <header><h1>{heading}</h1></header>
  <main>
{body}
  </main>
</body>
</html>
"""


def check_basic_auth(header: str | None, username: str, password: str) -> str | None:
    """Return the rejection message for an Authorization header, or ``None`` if it is valid."""
    if not header:
        return AUTH_MISSING
    scheme, _, encoded = header.partition(" ")
    if scheme != "Basic" or not encoded.strip():
        return AUTH_MALFORMED
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return AUTH_MALFORMED
    given_user, _, given_password = decoded.partition(":")
    user_ok = secrets.compare_digest(given_user.encode("utf-8"), username.encode("utf-8"))
    password_ok = secrets.compare_digest(given_password.encode("utf-8"), password.encode("utf-8"))
    if not (user_ok and password_ok):
        return AUTH_REJECTED
    return None


def _scripture_url(category: str, scripture_id: str) -> str:
    return f"/scripture/{quote(category)}/{quote(scripture_id)}"


def _chapter_url(category: str, scripture_id: str, chapter_id: str) -> str:
    return f"{_scripture_url(category, scripture_id)}/{quote(chapter_id)}"


def _page(title: str, body: str, heading: str | None = None) -> str:
    return PAGE_HTML.format(
        title=escape(title),
        heading=escape(heading if heading is not None else title),
        body=body,
    )


def _chapter_nav_link(
    category: str,
    scripture_id: str,
    chapter: Chapter | None,
    label: str,
) -> str:
    if chapter is None:
        return "<span></span>"
    url = _chapter_url(category, scripture_id, chapter.id)
    return f'<a href="{escape(url)}">{escape(label)} {escape(chapter.title)}</a>'


def create_app(config: WebConfig) -> FastAPI:
    root = config.root.expanduser().resolve()
    if not root.exists():
        raise FileNotFoundError(f"Scripture root not found: {root}")

    username = config.username or os.environ.get("AUTH_USERNAME")
    password = config.password or os.environ.get("AUTH_PASSWORD") or ""

    app = FastAPI(title="seikyo reader")
    app.state.config = config
    app.state.root = root

    if username:

        @app.middleware("http")
        async def basic_auth(request: Request, call_next):
            if request.url.path.startswith("/api"):
                return await call_next(request)
            error = check_basic_auth(request.headers.get("authorization"), username, password)
            if error is not None:
                return PlainTextResponse(
                    error,
                    status_code=401,
                    headers={"WWW-Authenticate": AUTH_REALM},
                )
            return await call_next(request)

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        infos = list_all_scriptures(root)
        sections: list[str] = []
        current_category: str | None = None
        for info in infos:
            if info.category != current_category:
                if current_category is not None:
                    sections.append("</ul>")
                sections.append(f"<h2>{escape(info.category)}</h2>\n<ul>")
                current_category = info.category
            url = _scripture_url(info.category, info.id)
            sections.append(
                f'<li><a href="{escape(url)}">{escape(info.title)}</a>'
                f" ({info.chapter_count}章)</li>"
            )
        if current_category is not None:
            sections.append("</ul>")
        if not sections:
            sections.append("<p>聖教データがありません。</p>")
        return HTMLResponse(_page("聖教", "\n".join(sections)))

    @app.get("/scripture/{category}/{scripture_id}", response_class=HTMLResponse)
    def scripture_page(category: str, scripture_id: str) -> HTMLResponse:
        scripture = load_scripture(root, category, scripture_id)
        if scripture is None:
            raise HTTPException(status_code=404, detail="Scripture not found")
        items = [
            f'<li><a href="{escape(_chapter_url(category, scripture_id, chapter.id))}">'
            f"{escape(chapter.title)}</a></li>"
            for chapter in scripture.chapters
        ]
        body = '<p><a href="/">← 一覧</a></p>\n<ol>\n' + "\n".join(items) + "\n</ol>"
        if scripture.source:
            body += f"\n<p><small>{escape(scripture.source)}</small></p>"
        return HTMLResponse(_page(scripture.title or scripture.id, body))

    @app.get("/scripture/{category}/{scripture_id}/{chapter_id}", response_class=HTMLResponse)
    def chapter_page(category: str, scripture_id: str, chapter_id: str) -> HTMLResponse:
        lookup = find_chapter(root, category, scripture_id, chapter_id)
        if lookup is None:
            raise HTTPException(status_code=404, detail="Chapter not found")
        scripture = lookup.scripture
        chapter = lookup.chapter
        back = (
            f'<p><a href="{escape(_scripture_url(category, scripture_id))}">'
            f"← {escape(scripture.title or scripture.id)}</a></p>"
        )
        text = render_chapter_html(chapter.content, chapter.glossary)
        nav = (
            '<nav class="chapters">'
            + _chapter_nav_link(category, scripture_id, lookup.next, "次")
            + _chapter_nav_link(category, scripture_id, lookup.previous, "前")
            + "</nav>"
        )
        body = f'{back}\n<article class="vertical">\n<h2>{escape(chapter.title)}</h2>\n{text}\n</article>\n{nav}'
        return HTMLResponse(
            _page(f"{chapter.title} - {scripture.title}", body, heading=chapter.title)
        )

    @app.get("/api/search")
    def api_search(q: str = Query("", description="Exact substring to find")) -> JSONResponse:
        query = q.strip()
        if not query:
            return JSONResponse({"results": []})
        hits = search_scriptures(root, query, limit=config.search_limit)
        results = [
            {
                "scriptureId": hit.scripture.id,
                "scriptureTitle": hit.scripture.title,
                "category": hit.scripture.category,
                "chapterId": hit.chapter.id,
                "chapterTitle": hit.chapter.title,
                "snippet": hit.snippet,
            }
            for hit in hits
        ]
        return JSONResponse({"results": results})

    @app.get("/api/scripture/{category}/{scripture_id}/{chapter_id}")
    def api_chapter(category: str, scripture_id: str, chapter_id: str) -> JSONResponse:
        lookup = find_chapter(root, category, scripture_id, chapter_id)
        if lookup is None:
            raise HTTPException(status_code=404, detail="Chapter not found")
        chapter = lookup.chapter
        index = build_glossary_index(chapter.glossary)
        blocks_payload: list[dict[str, object]] = []
        for block in segment_blocks(chapter.content):
            payload = block.to_payload()
            payload["nodes"] = serialize_inline_nodes(compose_inline(block.content, index))
            blocks_payload.append(payload)
        return JSONResponse(
            {
                "scripture": {
                    "id": lookup.scripture.id,
                    "title": lookup.scripture.title,
                    "category": category,
                },
                "chapter": {
                    "id": chapter.id,
                    "title": chapter.title,
                    "index": lookup.index,
                    "previous": lookup.previous.id if lookup.previous else None,
                    "next": lookup.next.id if lookup.next else None,
                },
                "blocks": blocks_payload,
                "glossary": [entry.to_payload() for entry in chapter.glossary],
            }
        )

    return app
