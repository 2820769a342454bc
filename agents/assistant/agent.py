# server/agents/assistant/agent.py
"""
Chat assistant agent - natural-language control of the irrigation system
"""

from typing import Any, Dict, Optional

from agents.assistant.actuation import ActuationLayer
from agents.assistant.conversation import ConversationStore
from agents.assistant.gate import ConfirmationGate, GateOutcome, GateState
from agents.assistant.intents import IntentClassifier
from agents.assistant.models import ChatRequest, ChatTurnResponse, ErrorInfo
from agents.base import BaseAgent
from agents.planner.agent import PlannerAgent
from core.config import Settings
from core.exceptions import CommandValidationError, user_message


class AssistantAgent(BaseAgent[ChatRequest, ChatTurnResponse]):
    """
    Chat entry point

    Direct device commands go through the intent classifier and the
    confirmation gate; everything else is handed to the planner's chat path.
    """

    def __init__(self, store: ConversationStore, actuator: ActuationLayer,
                 planner: Optional[PlannerAgent] = None, settings: Optional[Settings] = None):
        super().__init__("assistant", settings)
        self.store = store
        self.classifier = IntentClassifier(self.config)
        self.gate = ConfirmationGate(actuator, store, self.classifier)
        self.planner = planner
        self.max_prompt_chars = self.config.get("max_prompt_chars", 2000)

    def _validate_config(self) -> None:
        """Validate assistant agent configuration"""
        required_config = ["min_zone_id", "max_zone_id", "max_duration_sec", "max_rain_delay_hours"]

        missing = [key for key in required_config if key not in self.config]
        if missing:
            self.logger.warning(f"Missing assistant config (using defaults): {missing}")

    def _session(self, session_id: Optional[str]) -> str:
        return session_id or self.store.default_session_id

    def _outcome_response(self, outcome: GateOutcome, session: str) -> ChatTurnResponse:
        response = ChatTurnResponse(
            intent=outcome.intent.kind.value,
            parameters=outcome.intent.parameters,
            message_id=outcome.message_id,
            action_executed=outcome.action_executed,
            session_id=session,
        )
        if outcome.state == GateState.AWAITING_CONFIRMATION:
            response.confirmation_message = outcome.message
            response.requires_confirmation = True
        else:
            response.answer = outcome.message
        return response

    async def process_request(self, request: ChatRequest) -> ChatTurnResponse:
        session = self._session(request.session_id)
        text = (request.message or "").strip()
        if not text:
            raise CommandValidationError("Message is required")
        if len(text) > self.max_prompt_chars:
            raise CommandValidationError(f"Message too long. Maximum is {self.max_prompt_chars} characters")

        transcript = self.store.format_for_context(session)
        intent = self.classifier.parse_intent(text)
        self.store.add_turn("user", text, intent=intent.kind.value, session_id=session)
        self.logger.info(f"[{session}] classified as {intent.kind.value} (confidence {intent.confidence})")

        if intent.is_actionable:
            outcome = await self.gate.submit(intent, session)
            response = self._outcome_response(outcome, session)
        elif self.planner is None:
            response = ChatTurnResponse(
                answer="I can start or stop zones, set rain delays, create schedules and report status.",
                intent=intent.kind.value,
                session_id=session,
            )
        else:
            outcome = await self.planner.chat(text, transcript)
            response = ChatTurnResponse(
                response_type=outcome.response_type,
                answer=outcome.answer,
                confirmation_message=outcome.confirmation_message,
                follow_up_question=outcome.follow_up_question,
                direct_change_schedule=outcome.plan,
                compensated_schedule=outcome.compensated_plan,
                candidate_id=outcome.candidate.id if outcome.candidate else None,
                intent=intent.kind.value,
                action_executed=outcome.response_type == "modification",
                session_id=session,
            )

        self.store.add_turn("assistant", response.reply_text(), intent=response.intent, session_id=session)
        return response

    def get_fallback_response(self, request: ChatRequest, error: Exception) -> ChatTurnResponse:
        """Report the failure as a chat turn; nothing was executed"""
        session = self._session(request.session_id)
        response = ChatTurnResponse(
            session_id=session,
            error=ErrorInfo(
                kind=getattr(error, "kind", "internal"),
                message=user_message(error),
                retryable=getattr(error, "retryable", False),
            ),
        )
        if isinstance(error, CommandValidationError) and error.errors:
            response.parameters = {"validationErrors": error.errors}
        self.store.add_turn("assistant", response.reply_text(), session_id=session)
        return response

    async def confirm(self, message_id: str) -> ChatTurnResponse:
        """Execute a pending command; unknown or expired ids raise StateError"""
        pending = self.gate.get_pending(message_id)
        outcome = await self.gate.confirm_action(message_id)
        session = pending.session_id
        self.store.add_turn("assistant", outcome.message, intent=outcome.intent.kind.value, session_id=session)
        return self._outcome_response(outcome, session)

    def cancel(self, message_id: str) -> ChatTurnResponse:
        pending = self.gate.get_pending(message_id)
        outcome = self.gate.cancel_action(message_id)
        session = pending.session_id
        self.store.add_turn("assistant", outcome.message, intent=outcome.intent.kind.value, session_id=session)
        return self._outcome_response(outcome, session)

    def clear_session(self, session_id: Optional[str] = None) -> None:
        self.store.clear_session(session_id)

    async def health_check(self) -> Dict[str, Any]:
        health = await super().health_check()
        health.update(self.store.get_stats())
        health["pending_actions"] = self.gate.pending_count
        return health
