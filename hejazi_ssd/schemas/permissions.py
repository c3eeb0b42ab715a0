import uuid
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator


class JobPermissionsSave(BaseModel):
    jobId: int
    permissionsToAdd: List[str] = Field(default_factory=list)
    permissionsToRemove: List[str] = Field(default_factory=list)


class PermissionChange(BaseModel):
    service_id: Optional[int] = None
    sub_service_id: Optional[int] = None
    sub_sub_service_id: Optional[int] = None
    is_allowed: bool

    @model_validator(mode="after")
    def one_resource(self):
        ids = [self.service_id, self.sub_service_id, self.sub_sub_service_id]
        if sum(1 for i in ids if i is not None) != 1:
            raise ValueError("Exactly one of service_id, sub_service_id, sub_sub_service_id is required")
        return self


class UserExceptionsSave(BaseModel):
    userId: uuid.UUID
    changes: List[PermissionChange] = Field(default_factory=list)


class AppSecuritySave(BaseModel):
    isSystemActive: bool
    usersToEnableException: List[uuid.UUID] = Field(default_factory=list)
    usersToDisableException: List[uuid.UUID] = Field(default_factory=list)
