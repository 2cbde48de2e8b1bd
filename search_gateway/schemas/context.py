"""Pydantic schema for the caller context a query is evaluated under."""

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def new_guid() -> str:
    return str(uuid4())


class CallerContext(BaseModel):
    """Identity of the caller: tenant (solution), organization, user and granted privileges.

    Blank organization or user ids are replaced with random GUIDs so that a
    caller lacking them can never match tenant-scoped documents.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    solution_id: str = Field(..., min_length=1, description="Tenant (solution) id")
    solution_owner_id: Optional[str] = Field(None, description="User id of the solution owner")
    organization_id: str = Field(default_factory=new_guid, description="Caller organization id")
    user_id: str = Field(default_factory=new_guid, description="Caller user id")
    privileges: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Rights per 'Entity', 'Entity_Type' or '*', e.g. {'Event': ['read']}",
    )

    @field_validator("organization_id", "user_id", mode="before")
    @classmethod
    def replace_blank_id(cls, v: Optional[str]) -> str:
        """Substitute an unmatchable GUID for a missing id."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return new_guid()
        return v

    @property
    def is_solution_owner(self) -> bool:
        return bool(self.solution_owner_id) and (
            self.solution_owner_id.lower() == self.user_id.lower()
        )
