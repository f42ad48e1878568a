"""
Routes des posts: listing par projet, lecture, création et mise à jour.

Les écritures exigent un utilisateur authentifié et l'accord du collaborateur
d'autorisation; la publication (commit) est le comportement par défaut, un
aperçu se demande avec `preview: true`.
"""

from functools import partial

from fastapi import APIRouter, Depends

from backend.api.deps import get_authorizer, get_current_user, get_post_service
from backend.api.schemas import PostCreate, PostResponse, PostUpdate
from backend.domain.entities import User
from backend.domain.policy import Authorizer, require_authorized
from backend.infra.repo.content_repo import DEFAULT_POST_SORT
from backend.services.content_service import PostService

router = APIRouter(tags=["posts"])


@router.get("/projects/{project_id}/posts", response_model=list[PostResponse])
def list_posts(
    project_id: int,
    scope: str = "active",
    sort: str = DEFAULT_POST_SORT,
    service: PostService = Depends(get_post_service),
):
    """
    Liste les posts d'un projet.

    Paramètres:
    - scope: `active` (publiés/édités, défaut) ou `all` (brouillons inclus).
    - sort: `-number` (défaut), `number`, `-created_at`, `created_at`.
    """
    posts = service.list_for_project(project_id, scope=scope, sort=sort)
    return [PostResponse.model_validate(post) for post in posts]


@router.get("/posts/{post_id}", response_model=PostResponse)
def show_post(post_id: int, service: PostService = Depends(get_post_service)):
    return PostResponse.model_validate(service.get(post_id))


@router.post("/posts", response_model=PostResponse)
def create_post(
    payload: PostCreate,
    user: User = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
    service: PostService = Depends(get_post_service),
):
    """Crée un post; publié d'emblée sauf demande d'aperçu."""
    post = service.create(
        user.id,
        payload.attrs(),
        commit=payload.wants_commit(),
        guard=partial(require_authorized, authorizer, user, "create"),
    )
    return PostResponse.model_validate(post)


@router.patch("/posts/{post_id}", response_model=PostResponse)
def update_post(
    post_id: int,
    payload: PostUpdate,
    user: User = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
    service: PostService = Depends(get_post_service),
):
    """Met à jour un post (aperçu ou sauvegarde validée)."""
    post = service.save(
        post_id,
        commit=payload.wants_commit(),
        attrs=payload.attrs(),
        guard=partial(require_authorized, authorizer, user, "update"),
    )
    return PostResponse.model_validate(post)
