"""Pydantic schemas for API request/response models."""

from app.schemas.auth import MeResponse, UserSession
from app.schemas.issue import IssueCreate, IssueRead, IssueUpdate
from app.schemas.customer import CustomerCreate, CustomerRead, CustomerUpdate

__all__ = [
    "MeResponse",
    "UserSession",
    "IssueCreate",
    "IssueRead",
    "IssueUpdate",
    "CustomerCreate",
    "CustomerRead",
    "CustomerUpdate",
]
