"""
Discord webhook payload models.

Pydantic models for the outbound webhook body. Only the subset of the
Discord API that the notification tool exposes is modelled.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# A message record as returned by Discord; treated as opaque apart from "id"
SentMessage = Dict[str, Any]


class AllowedMentionsType(str, Enum):
    """Mention kinds that may be parsed from message content."""

    ROLES = "roles"
    USERS = "users"
    EVERYONE = "everyone"


class EmbedFooter(BaseModel):
    """Embed footer."""

    text: str
    icon_url: Optional[str] = None


class EmbedAuthor(BaseModel):
    """Embed author."""

    name: str
    url: Optional[str] = None
    icon_url: Optional[str] = None


class EmbedField(BaseModel):
    """A name/value pair displayed inside an embed."""

    name: str
    value: str
    inline: Optional[bool] = None


class Embed(BaseModel):
    """Rich content block attached to a message."""

    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    color: Optional[int] = None
    timestamp: Optional[str] = None
    footer: Optional[EmbedFooter] = None
    author: Optional[EmbedAuthor] = None
    fields: Optional[List[EmbedField]] = None


class AllowedMentions(BaseModel):
    """Filter restricting which mentions in the content actually notify."""

    parse: Optional[List[AllowedMentionsType]] = None
    roles: Optional[List[str]] = None
    users: Optional[List[str]] = None
    replied_user: Optional[bool] = None


class OutboundMessage(BaseModel):
    """Body of an execute-webhook request."""

    content: str = Field(..., description="The message content to send")
    tts: Optional[bool] = None
    embeds: Optional[List[Embed]] = None
    allowed_mentions: Optional[AllowedMentions] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON body with unset fields omitted rather than sent as null."""
        return self.model_dump(mode="json", exclude_none=True)
