"""
Status-tagged admin metadata.

Each admin status carries its own set of fields. The union is discriminated
on ``status`` so a record can only ever hold the metadata of the status it
is in; leftovers from a previous status cannot survive a transition.
"""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Details(BaseModel):
    model_config = ConfigDict(frozen=True)


class PendingDetails(_Details):
    status: Literal["pending"] = "pending"
    verification_code_used: str
    application_notes: str | None = None
    submitted_at: datetime
    is_reapplication: bool = False


class ApprovedDetails(_Details):
    status: Literal["approved"] = "approved"
    approved_at: datetime
    approved_by: UUID
    notes: str | None = None
    # Binding is current only while this equals the mosque's code
    verification_code_used: str


class RejectedDetails(_Details):
    status: Literal["rejected"] = "rejected"
    rejection_reason: str
    rejection_date: datetime
    rejected_by: UUID
    can_reapply: bool = True


class MosqueDeletedDetails(_Details):
    status: Literal["mosque_deleted"] = "mosque_deleted"
    mosque_deletion_reason: str
    mosque_deletion_date: datetime
    deleted_mosque_name: str
    deleted_mosque_location: str
    can_reapply: bool = True


class RemovedDetails(_Details):
    status: Literal["removed"] = "removed"
    removal_reason: str
    removal_date: datetime
    removed_by: UUID
    removed_from_mosque_name: str | None = None
    removed_from_mosque_location: str | None = None
    can_reapply: bool = True


StatusDetails = Annotated[
    PendingDetails | ApprovedDetails | RejectedDetails | MosqueDeletedDetails | RemovedDetails,
    Field(discriminator="status"),
]

ReapplicableDetails = RejectedDetails | MosqueDeletedDetails | RemovedDetails

status_details_adapter: TypeAdapter[StatusDetails] = TypeAdapter(StatusDetails)


def parse_details(raw: dict) -> StatusDetails:
    return status_details_adapter.validate_python(raw)


def dump_details(details: StatusDetails) -> dict:
    return details.model_dump(mode="json")
