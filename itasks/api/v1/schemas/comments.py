# itasks/api/v1/schemas/comments.py
from datetime import datetime
from typing import List, Optional, Literal

from pydantic import BaseModel, Field, UUID4

from itasks.api.v1.schemas.users import UserSummary
from itasks.utils.mentions import render_segments


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    mentioned_user_ids: List[UUID4] = Field(default_factory=list, description="Users to mention explicitly")


class CommentSegment(BaseModel):
    type: Literal["text", "mention"]
    text: str
    user_id: Optional[str] = None
    name: Optional[str] = None


class CommentResponse(BaseModel):
    id: UUID4
    author: Optional[UserSummary] = None
    content: str
    mentions: List[UserSummary] = Field(default_factory=list)
    segments: List[CommentSegment] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_model(cls, comment):
        mentioned = [mention.user for mention in comment.mentions if mention.user is not None]
        users_by_email = {user.email.lower(): user for user in mentioned}
        return cls(
            id=comment.uuid,
            author=UserSummary.from_model(comment.author),
            content=comment.content,
            mentions=[UserSummary.from_model(user) for user in mentioned],
            segments=render_segments(comment.content, users_by_email),
            created_at=comment.created_at,
        )


class AttachmentResponse(BaseModel):
    id: UUID4
    filename: str
    mime_type: str
    size_bytes: int
    uploader: Optional[UserSummary] = None
    created_at: datetime

    @classmethod
    def from_model(cls, attachment):
        return cls(
            id=attachment.uuid,
            filename=attachment.filename,
            mime_type=attachment.mime_type,
            size_bytes=attachment.size_bytes,
            uploader=UserSummary.from_model(attachment.__dict__.get("uploader")),
            created_at=attachment.created_at,
        )
