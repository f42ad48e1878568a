"""
Rendu Markdown (variante GitHub) vers un fragment HTML assaini.

- Blocs de code, tableaux, liens automatiques et texte barré (preset `gfm-like`
  de markdown-it-py).
- Le HTML brut de l'entrée est échappé (`html=False`) et les schémas de liens
  dangereux (`javascript:` …) sont refusés par le validateur de markdown-it.
- Les blocs de premier niveau sont séparés par une ligne vide, sans saut de
  ligne final.

Le rendu ne lève jamais: en cas d'erreur interne, le texte est renvoyé
échappé dans un paragraphe.
"""

from __future__ import annotations

import html
from functools import lru_cache

import structlog
from markdown_it import MarkdownIt
from markdown_it.token import Token

log = structlog.get_logger(__name__)


@lru_cache(maxsize=1)
def _parser() -> MarkdownIt:
    return MarkdownIt("gfm-like", {"html": False})


def _top_level_blocks(tokens: list[Token]) -> list[list[Token]]:
    """Découpe le flux de tokens en blocs de premier niveau."""
    blocks: list[list[Token]] = []
    current: list[Token] = []
    for token in tokens:
        current.append(token)
        if token.level == 0 and token.nesting <= 0:
            blocks.append(current)
            current = []
    if current:
        blocks.append(current)
    return blocks


def render_markdown(markdown: str | None) -> str:
    """Rend `markdown` en HTML. Fonction pure et déterministe.

    Exemple:
        >>> render_markdown("# Hello World\\n\\nHello, world.")
        '<h1>Hello World</h1>\\n\\n<p>Hello, world.</p>'
    """
    if not markdown:
        return ""
    try:
        md = _parser()
        env: dict = {}
        tokens = md.parse(markdown, env)
        rendered = [
            md.renderer.render(block, md.options, env).rstrip("\n")
            for block in _top_level_blocks(tokens)
        ]
        return "\n\n".join(part for part in rendered if part)
    except Exception as exc:
        log.warning("markdown_render_degraded", error=type(exc).__name__)
        return f"<p>{html.escape(markdown)}</p>"
