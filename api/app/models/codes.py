"""Request and response models for the code pipeline."""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CodeStatus(str, Enum):
    """Availability of a user's code."""

    AVAILABLE = "Available"
    UNAVAILABLE = "Unavailable"


# =============================================================================
# Inbound platform events
# =============================================================================


class CommentAuthor(BaseModel):
    """Author block of an inbound comment event."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None


class CommentBody(BaseModel):
    """Comment block of an inbound comment event."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    body: Optional[str] = None
    author: Optional[str] = None
    post_id: Optional[str] = Field(default=None, alias="postId")


class CommentCreateEvent(BaseModel):
    """Comment-creation trigger sent by the host platform."""

    model_config = ConfigDict(extra="ignore")

    comment: Optional[CommentBody] = None
    author: Optional[CommentAuthor] = None

    @property
    def body(self) -> Optional[str]:
        return self.comment.body if self.comment else None

    @property
    def user_id(self) -> Optional[str]:
        user_id = (self.author.id if self.author else None) or ""
        return user_id.strip() or None

    @property
    def username(self) -> Optional[str]:
        name = (self.author.name if self.author else None) or ""
        return name.strip() or None


# =============================================================================
# API responses
# =============================================================================


class RetrieveCodeResponse(BaseModel):
    """Current code status for the caller."""

    status: CodeStatus
    code: Optional[str] = None


class DeleteCodeResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str = "Code deleted successfully"


class InitResponse(BaseModel):
    """Bootstrap payload for the companion view."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["init"] = "init"
    post_id: str = Field(..., alias="postId")
    username: str


class InstallResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    message: str
    code: Optional[str] = None
