from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class OrganizationSetup(BaseModel):
    name: str
    description: Optional[str] = None


class OrganizationUpdate(BaseModel):
    # The name is fixed at creation; only metadata can change
    description: Optional[str] = None


class OrganizationResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
