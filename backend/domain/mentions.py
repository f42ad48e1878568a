"""
Extraction des mentions d'utilisateurs (`@username`) depuis le texte brut.

Un jeton de mention est un `@` suivi d'au moins un caractère parmi lettres,
chiffres et `_` (le `_` ne coupe pas le jeton). Le `@` ne doit pas suivre un
caractère de mot, ce qui écarte les adresses e-mail. L'extraction porte sur
le Markdown brut, avant rendu, pour ne pas dépendre du balisage produit.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol

MENTION_PATTERN = re.compile(r"(?<![\w@])@(\w+)")


class UsernameLookup(Protocol):
    """Résolution de noms d'utilisateur vers des identifiants existants."""

    def resolve_usernames(self, usernames: Iterable[str]) -> dict[str, int]:
        """Retourne `username -> user_id` pour les seuls utilisateurs existants."""
        ...


def mention_tokens(text: str | None) -> list[str]:
    """Jetons `@username` du texte, dédupliqués, dans l'ordre de première occurrence."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for match in MENTION_PATTERN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def extract_mentions(text: str | None, lookup: UsernameLookup) -> list[int]:
    """Identifiants des utilisateurs mentionnés dans `text`.

    Les jetons qui ne correspondent à aucun utilisateur sont ignorés
    silencieusement. Le résultat est dédupliqué et ordonné par première
    occurrence dans le texte.
    """
    tokens = mention_tokens(text)
    if not tokens:
        return []
    resolved = lookup.resolve_usernames(tokens)
    user_ids: list[int] = []
    for token in tokens:
        user_id = resolved.get(token)
        if user_id is not None and user_id not in user_ids:
            user_ids.append(user_id)
    return user_ids
