from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PartnerOut(BaseModel):
    id: str
    display_name: str
    avatar_url: Optional[str] = None


class RelationshipOut(BaseModel):
    id: str
    status: str
    is_inviter: bool
    partner: Optional[PartnerOut] = None
    created_at: datetime
    updated_at: datetime


class RelationshipListOut(BaseModel):
    relationships: List[RelationshipOut]


class InvitationCreated(BaseModel):
    id: str
    invitation_token: str
    invite_url: str
    status: str


class InvitationInfo(BaseModel):
    id: str
    status: str
    inviter: Optional[PartnerOut] = None


class AcceptOut(BaseModel):
    message: str
    relationship: RelationshipOut
    already_accepted: bool = False


class ChoiceIn(BaseModel):
    limit_id: str
    is_accepted: bool


class ChoicesUpdate(BaseModel):
    limits: List[ChoiceIn]


class ChoiceOut(BaseModel):
    limit_id: str
    is_accepted: bool
    note: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class ChoiceListOut(BaseModel):
    limits: List[ChoiceOut]


class NoteIn(BaseModel):
    # Length and emptiness are checked after trimming
    note: str = Field(..., max_length=5000)


class NoteDeleted(BaseModel):
    message: str
    limit: Optional[ChoiceOut] = None


class CommonLimitOut(BaseModel):
    limit_id: str
    name: str
    description: Optional[str] = None
    subcategory_id: str
    subcategory_name: str
    category_id: str
    category_name: str
    my_note: Optional[str] = None
    partner_note: Optional[str] = None


class CommonLimitListOut(BaseModel):
    common_limits: List[CommonLimitOut]
    count: int
