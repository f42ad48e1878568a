"""
Routes des commentaires: listing par post, lecture, création et mise à jour.
"""

from functools import partial

from fastapi import APIRouter, Depends

from backend.api.deps import get_authorizer, get_comment_service, get_current_user
from backend.api.schemas import CommentCreate, CommentResponse, CommentUpdate
from backend.domain.entities import User
from backend.domain.policy import Authorizer, require_authorized
from backend.infra.repo.content_repo import DEFAULT_COMMENT_SORT
from backend.services.content_service import CommentService

router = APIRouter(tags=["comments"])


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
def list_comments(
    post_id: int,
    scope: str = "active",
    sort: str = DEFAULT_COMMENT_SORT,
    service: CommentService = Depends(get_comment_service),
):
    comments = service.list_for_post(post_id, scope=scope, sort=sort)
    return [CommentResponse.model_validate(comment) for comment in comments]


@router.get("/comments/{comment_id}", response_model=CommentResponse)
def show_comment(comment_id: int, service: CommentService = Depends(get_comment_service)):
    return CommentResponse.model_validate(service.get(comment_id))


@router.post("/comments", response_model=CommentResponse)
def create_comment(
    payload: CommentCreate,
    user: User = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
    service: CommentService = Depends(get_comment_service),
):
    comment = service.create(
        user.id,
        payload.attrs(),
        commit=payload.wants_commit(),
        guard=partial(require_authorized, authorizer, user, "create"),
    )
    return CommentResponse.model_validate(comment)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: int,
    payload: CommentUpdate,
    user: User = Depends(get_current_user),
    authorizer: Authorizer = Depends(get_authorizer),
    service: CommentService = Depends(get_comment_service),
):
    comment = service.save(
        comment_id,
        commit=payload.wants_commit(),
        attrs=payload.attrs(),
        guard=partial(require_authorized, authorizer, user, "update"),
    )
    return CommentResponse.model_validate(comment)
