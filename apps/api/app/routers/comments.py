"""Comments router - deletion and orphaned-comment review."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header, require_permission
from app.core.policies import POLICIES
from app.schemas.auth import UserSession
from app.schemas.issue import CommentRead
from app.services import comment_service

router = APIRouter(
    dependencies=[Depends(require_permission(POLICIES["issues"].default))]
)


@router.get("/orphaned", response_model=list[CommentRead])
def list_orphaned_comments(
    issue_id: UUID | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Comments left behind by deleted issues."""
    comments = comment_service.list_orphaned_comments(db, session, issue_id)
    return [
        CommentRead.model_validate(c).model_copy(update={"orphaned": True})
        for c in comments
    ]


@router.delete("/{comment_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_comment(
    comment_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    comment_service.delete_comment(db, session, comment_id)
