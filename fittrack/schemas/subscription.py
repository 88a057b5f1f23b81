"""Subscription API schemas."""

from __future__ import annotations

from typing import List
from uuid import UUID

from pydantic import BaseModel


class SubscriptionsResponse(BaseModel):
    user_id: UUID
    notification_types: List[str]
