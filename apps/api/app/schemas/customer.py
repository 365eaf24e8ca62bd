"""Pydantic schemas for customers."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class CustomerCreate(BaseModel):
    company_name: str = Field(..., max_length=255)


class CustomerUpdate(BaseModel):
    company_name: str = Field(..., max_length=255)


class CustomerRead(BaseModel):
    id: UUID
    company_name: str
    total_issues: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CounterDriftRead(BaseModel):
    customer_id: UUID
    company_name: str
    stored: int
    actual: int

    model_config = {"from_attributes": True}


class ReconcileResponse(BaseModel):
    corrected: list[CounterDriftRead]
