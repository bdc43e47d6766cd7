"""
Request Bodies

Shape checks for actor writes. Content rules (length, allowed emoji,
poll state) belong to the store, so every transport gets the same
answers.
"""

from typing import Optional, Type

from pydantic import BaseModel, StrictInt, StrictStr

from ..contracts.base import LogKind


class ChatMessageIn(BaseModel):
    message: StrictStr
    user_name: Optional[StrictStr] = None


class ReactionIn(BaseModel):
    emoji: StrictStr
    phase: Optional[StrictStr] = None


class VoteIn(BaseModel):
    poll_id: StrictStr
    option_index: StrictInt


WRITE_MODELS = {
    LogKind.CHAT: ChatMessageIn,
    LogKind.REACTION: ReactionIn,
    LogKind.POLL: VoteIn,
}


def model_for(kind: LogKind) -> Optional[Type[BaseModel]]:
    return WRITE_MODELS.get(kind)
