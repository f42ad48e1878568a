# Schémas Pydantic exposés par l'API (requêtes et réponses).

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from backend.domain.publishing import ContentState

# `markdown` est accepté comme alias historique de `markdown_preview`
_MARKDOWN_FIELD = Field(
    default=None, validation_alias=AliasChoices("markdown_preview", "markdown")
)


class SaveFlags(BaseModel):
    """Drapeaux de sauvegarde communs aux requêtes d'écriture.

    Champs:
    - preview: True pour une sauvegarde d'aperçu (rien n'est publié)
    - state: "published" force une sauvegarde validée; toute autre valeur vaut aperçu
    """

    preview: bool = False
    state: str | None = None

    def wants_commit(self) -> bool:
        if self.preview:
            return False
        if self.state is not None:
            return self.state == ContentState.PUBLISHED.value
        return True


class PostCreate(SaveFlags):
    """Création d'un post. `status` et `number` ne sont pas acceptés."""

    project_id: int | None = None
    title: str | None = None
    post_type: str | None = None
    markdown_preview: str | None = _MARKDOWN_FIELD

    def attrs(self) -> dict:
        return self.model_dump(
            include={"project_id", "title", "post_type", "markdown_preview"}, exclude_unset=True
        )


class PostUpdate(SaveFlags):
    """Mise à jour d'un post."""

    title: str | None = None
    post_type: str | None = None
    markdown_preview: str | None = _MARKDOWN_FIELD

    def attrs(self) -> dict:
        return self.model_dump(include={"title", "post_type", "markdown_preview"}, exclude_unset=True)


class CommentCreate(SaveFlags):
    """Création d'un commentaire sur `post_id`."""

    post_id: int | None = None
    markdown_preview: str | None = _MARKDOWN_FIELD

    def attrs(self) -> dict:
        return self.model_dump(include={"post_id", "markdown_preview"}, exclude_unset=True)


class CommentUpdate(SaveFlags):
    markdown_preview: str | None = _MARKDOWN_FIELD

    def attrs(self) -> dict:
        return self.model_dump(include={"markdown_preview"}, exclude_unset=True)


class ContentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    state: ContentState
    markdown: str | None
    markdown_preview: str | None
    body: str | None
    body_preview: str | None
    edited_at: datetime | None
    created_at: datetime | None
    updated_at: datetime | None
    mentioned_user_ids: list[int]


class PostResponse(ContentResponse):
    """Post sérialisé (`number` nul tant que brouillon)."""

    project_id: int
    title: str | None
    number: int | None
    post_type: str
    status: str
    comments_count: int


class CommentResponse(ContentResponse):
    post_id: int
