from fastapi import APIRouter, Depends, HTTPException, status

from ....core.dependencies import get_post_service
from ....domain.errors import EntitlementDenied, NotFoundError
from ....domain.models import User
from ....services.post_service import PostService
from ...api.dependencies import require_active_user
from ...api.schemas.post_schemas import (
    CreatePostRequest,
    CreateReplyRequest,
    PostResponse,
    ReplyResponse,
)

router = APIRouter(prefix="/api/posts", tags=["Posts"])


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: CreatePostRequest,
    user: User = Depends(require_active_user),
    service: PostService = Depends(get_post_service),
) -> PostResponse:
    try:
        post = service.create_post(user.id, payload.title, payload.content)
    except EntitlementDenied as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return PostResponse(
        id=post.id,
        user_id=post.user_id,
        title=post.title,
        content=post.content,
        status=post.status,
        created_at=post.created_at,
    )


@router.post("/{post_id}/replies", response_model=ReplyResponse, status_code=status.HTTP_201_CREATED)
async def create_reply(
    post_id: int,
    payload: CreateReplyRequest,
    user: User = Depends(require_active_user),
    service: PostService = Depends(get_post_service),
) -> ReplyResponse:
    try:
        reply = service.create_reply(user.id, post_id, payload.content, is_anonymous=payload.is_anonymous)
    except (EntitlementDenied, NotFoundError) as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ReplyResponse(
        id=reply.id,
        post_id=reply.post_id,
        user_id=reply.user_id,
        content=reply.content,
        is_anonymous=reply.is_anonymous,
        created_at=reply.created_at,
    )
