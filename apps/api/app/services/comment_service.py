"""Comment service - issue comments and orphaned-comment lookup."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.authorization import require_permission
from app.core.exceptions import NotFoundError, ValidationError
from app.core.permissions import PermissionKey as P
from app.db.models import Comment, Issue
from app.schemas.auth import UserSession
from app.services import activity_service
from app.services.repository import TenantRepository


def add_comment(db: Session, session: UserSession, issue_id: UUID, content: str) -> Comment:
    """
    Add a comment. Any user who can read issues may comment.

    user_name is copied from the session and not updated later.
    """
    require_permission(session, P.ISSUES_READ)
    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment cannot be empty")

    repo = TenantRepository(db)
    issue = repo.get_or_404("issues", issue_id, session.org_id, "Issue not found")

    comment = repo.create("comments", session.org_id, {
        "issue_id": issue.id,
        "user_id": session.user_id,
        "user_name": session.display_name,
        "content": content,
    })
    activity_service.log_comment_added(db, session, issue)
    db.commit()
    db.refresh(comment)
    return comment


def list_comments(db: Session, session: UserSession, issue_id: UUID) -> list[Comment]:
    """Oldest first. The issue must exist in the caller's org."""
    require_permission(session, P.ISSUES_READ)
    repo = TenantRepository(db)
    repo.get_or_404("issues", issue_id, session.org_id, "Issue not found")
    return list(
        db.execute(
            select(Comment)
            .where(Comment.organization_id == session.org_id, Comment.issue_id == issue_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        ).scalars().all()
    )


def list_orphaned_comments(
    db: Session, session: UserSession, issue_id: UUID | None = None
) -> list[Comment]:
    """Comments whose issue has been deleted, optionally for one former issue id."""
    require_permission(session, P.SETTINGS_READ)
    live_issue_ids = select(Issue.id).where(Issue.organization_id == session.org_id)
    query = select(Comment).where(
        Comment.organization_id == session.org_id,
        Comment.issue_id.not_in(live_issue_ids),
    )
    if issue_id is not None:
        query = query.where(Comment.issue_id == issue_id)
    return list(db.execute(query.order_by(Comment.created_at.asc())).scalars().all())


def delete_comment(db: Session, session: UserSession, comment_id: UUID) -> None:
    """Authors may delete their own comments; others need issues:delete."""
    require_permission(session, P.ISSUES_READ)
    repo = TenantRepository(db)
    comment = repo.get_or_404("comments", comment_id, session.org_id, "Comment not found")
    if comment.user_id != session.user_id:
        require_permission(session, P.ISSUES_DELETE)
    repo.delete("comments", comment_id, session.org_id)
    db.commit()
