"""
Request/response models for the chat assistant
"""
from typing import Any, Dict, Literal, Optional

from pydantic import Field

from agents.schedule.models import CamelModel, WateringSchedule


class ChatRequest(CamelModel):
    message: str = Field(..., description="Free-text user input")
    session_id: Optional[str] = Field(None, description="Conversation session; shared default when omitted")


class ActionRequest(CamelModel):
    message_id: str


class ErrorInfo(CamelModel):
    kind: str
    message: str
    retryable: bool = False


class ChatTurnResponse(CamelModel):
    response_type: Literal["answer", "modification"] = "answer"
    answer: Optional[str] = None
    confirmation_message: Optional[str] = None
    follow_up_question: Optional[str] = None
    direct_change_schedule: Optional[WateringSchedule] = None
    compensated_schedule: Optional[WateringSchedule] = None
    requires_confirmation: bool = False
    intent: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    message_id: Optional[str] = None
    candidate_id: Optional[str] = None
    action_executed: bool = False
    session_id: Optional[str] = None
    error: Optional[ErrorInfo] = None

    def reply_text(self) -> str:
        """Text recorded as the assistant's turn"""
        if self.error:
            return self.error.message
        parts = [p for p in (self.answer, self.confirmation_message, self.follow_up_question) if p]
        return " ".join(parts)
