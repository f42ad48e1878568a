"""
Numérotation des posts par projet.

Point de sérialisation par projet:
- PostgreSQL: verrou consultatif transactionnel sur l'identifiant du projet;
- toutes bases: incrément atomique `last_number = last_number + 1` sur la
  ligne compteur (verrou de ligne jusqu'au commit);
- SQLite: les transactions démarrent déjà en `BEGIN IMMEDIATE` (voir `db.py`).

La contrainte unique `(project_id, number)` des posts reste le garde-fou final.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.domain.errors import DuplicateSequenceValue
from backend.infra.repo.content_repo import PostRepo
from backend.infra.repo.models import ProjectSequenceORM

log = structlog.get_logger(__name__)

# Espace de noms des verrous consultatifs (évite les collisions avec d'autres usages)
ADVISORY_LOCK_NAMESPACE = 7411


class ProjectSequencer:
    """Attribue le prochain numéro de post d'un projet."""

    def next_number(self, session: Session, project_id: int) -> int:
        """Incrémente et retourne le compteur du projet, dans la transaction courante.

        Le compteur est créé à la volée depuis le plus grand numéro existant.
        Lève `DuplicateSequenceValue` si deux créations concurrentes du
        compteur entrent en collision.
        """
        if session.get_bind().dialect.name == "postgresql":
            session.execute(
                text("SELECT pg_advisory_xact_lock(:ns, :key)"),
                {"ns": ADVISORY_LOCK_NAMESPACE, "key": project_id},
            )
        result = session.execute(
            update(ProjectSequenceORM)
            .where(ProjectSequenceORM.project_id == project_id)
            .values(last_number=ProjectSequenceORM.last_number + 1)
        )
        if result.rowcount:
            number = session.execute(
                select(ProjectSequenceORM.last_number).where(
                    ProjectSequenceORM.project_id == project_id
                )
            ).scalar_one()
        else:
            number = PostRepo(session).max_number(project_id) + 1
            try:
                with session.begin_nested():
                    session.add(ProjectSequenceORM(project_id=project_id, last_number=number))
                    session.flush()
            except IntegrityError as err:
                raise DuplicateSequenceValue(project_id, number) from err
        log.debug("sequence_number_assigned", project_id=project_id, number=number)
        return int(number)
