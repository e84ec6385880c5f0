from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class UserTokenData(BaseModel):
    """
    Defines the structure of the JWT payload after validation.
    This schema is the contract between the auth service and the deploy service.
    """

    user_id: UUID = Field(..., alias="sub")
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
