"""
Régénération des mentions d'un contenu.

Les mentions reflètent toujours le dernier texte validé (`markdown`): chaque
passage aligne les mentions enregistrées sur ce texte, dans la même
transaction que la sauvegarde du contenu. Une mention encore présente garde
son identifiant; seul un utilisateur nouvellement mentionné sera notifié.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from backend.app.metrics import MENTIONS_GENERATED_TOTAL
from backend.domain.entities import ContentEntity
from backend.domain.mentions import extract_mentions
from backend.infra.repo.mention_repo import MentionRepo
from backend.infra.repo.user_repo import SqlUserLookup

log = structlog.get_logger(__name__)


class MentionGenerator:
    """Extrait puis remplace les mentions d'un contenu persisté."""

    def regenerate(self, session: Session, entity: ContentEntity, now: datetime) -> list[int]:
        """Remplace les mentions de `entity` et retourne les utilisateurs mentionnés.

        Un contenu jamais validé (`markdown` nul) n'a aucune mention.
        """
        user_ids = extract_mentions(entity.markdown, SqlUserLookup(session))
        MentionRepo(session).replace(entity, user_ids, now)
        MENTIONS_GENERATED_TOTAL.labels(kind=entity.kind).inc(len(user_ids))
        log.debug(
            "mentions_regenerated",
            entity_kind=entity.kind,
            entity_id=entity.id,
            count=len(user_ids),
        )
        return user_ids
