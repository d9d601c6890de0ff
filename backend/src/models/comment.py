"""Blog comment data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CommentStatus(str, Enum):
    """Moderation status of a comment."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Comment(BaseModel):
    """Stored comment record (blog_comments table, keyed by post_id + comment_id)."""

    post_id: str
    comment_id: str
    user_id: str
    user_name: str = "Anonymous"
    user_email: str | None = None
    content: str
    parent_id: str | None = None
    likes: int = Field(default=0, ge=0)
    is_edited: bool = False
    is_pinned: bool = False
    status: CommentStatus = CommentStatus.APPROVED
    created_at: str
    updated_at: str
    approved_at: str | None = None

    model_config = ConfigDict(use_enum_values=True)


class CommentNode(BaseModel):
    """A comment placed in a thread tree, annotated for the current viewer."""

    comment: Comment
    replies: list["CommentNode"] = Field(default_factory=list)
    user_liked: bool = False
    depth: int = 0
    can_reply: bool = True

    @property
    def comment_id(self) -> str:
        return self.comment.comment_id


class CommentCreate(BaseModel):
    """Request body for posting a comment or a reply."""

    content: str = Field(..., min_length=1, max_length=5000)
    parent_id: str | None = None


class CommentEdit(BaseModel):
    """Request body for editing one's own comment."""

    content: str = Field(..., min_length=1, max_length=5000)


class CommentModeration(BaseModel):
    """Admin request body for approving or rejecting a comment."""

    status: CommentStatus
