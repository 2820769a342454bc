"""
Confirmation gate for actuation commands

    Classified -> Executing -> Completed
    Classified -> AwaitingConfirmation -> Executing -> Completed
                                       -> Cancelled
                                       -> Expired (owning session evicted)

A pending entry leaves the table only through its confirm, its cancel or the
eviction of its session, and confirm removes it before the first await. A
classified command therefore reaches the actuation layer at most once.
"""
import logging
import uuid
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel

from agents.assistant.actuation import ActuationLayer
from agents.assistant.conversation import ConversationStore
from agents.assistant.intents import (
    ALL_ZONES, IntentClassifier, IntentKind, ParsedIntent, format_days
)
from agents.schedule.clock import utc_now
from core.exceptions import CommandValidationError, StateError

logger = logging.getLogger(__name__)

SOURCE_TAG = "ai"


class GateState(str, Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PendingAction(BaseModel):
    message_id: str
    intent: ParsedIntent
    created_at: str
    session_id: str


class GateOutcome(BaseModel):
    state: GateState
    message: str
    intent: ParsedIntent
    message_id: Optional[str] = None
    action_executed: bool = False
    success: bool = True


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


class ConfirmationGate:
    def __init__(self, actuator: ActuationLayer, store: ConversationStore,
                 classifier: Optional[IntentClassifier] = None):
        self.actuator = actuator
        self.store = store
        self.classifier = classifier or IntentClassifier()
        self._pending: Dict[str, PendingAction] = {}
        store.add_eviction_listener(self._expire_session)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get_pending(self, message_id: str) -> Optional[PendingAction]:
        return self._pending.get(message_id)

    def _expire_session(self, session_id: str) -> None:
        expired = [mid for mid, p in self._pending.items() if p.session_id == session_id]
        for message_id in expired:
            self._pending.pop(message_id, None)
            logger.info(f"Pending action {message_id} expired with session {session_id}")

    async def submit(self, intent: ParsedIntent, session_id: Optional[str] = None) -> GateOutcome:
        if intent.validation_errors:
            raise CommandValidationError("; ".join(intent.validation_errors), intent.validation_errors)
        if not intent.is_actionable:
            raise CommandValidationError("Command not recognized")

        if not intent.requires_confirmation:
            return await self._execute(intent)

        pending = PendingAction(
            message_id=str(uuid.uuid4()),
            intent=intent,
            created_at=utc_now().isoformat(),
            session_id=session_id or self.store.default_session_id,
        )
        self._pending[pending.message_id] = pending
        logger.info(f"Awaiting confirmation for {intent.kind.value} ({pending.message_id})")

        return GateOutcome(
            state=GateState.AWAITING_CONFIRMATION,
            message=self.classifier.generate_confirmation_message(intent),
            intent=intent,
            message_id=pending.message_id,
        )

    async def confirm_action(self, message_id: str) -> GateOutcome:
        self.store.sweep()
        pending = self._pending.pop(message_id, None)
        if pending is None:
            raise StateError("Action not found or expired. Please try your command again.")

        if not self.store.is_active(pending.session_id):
            logger.info(f"Pending action {message_id} expired: session {pending.session_id} is no longer active")
            raise StateError("Action not found or expired. Please try your command again.")

        outcome = await self._execute(pending.intent)
        outcome.message_id = message_id
        return outcome

    def cancel_action(self, message_id: str) -> GateOutcome:
        pending = self._pending.pop(message_id, None)
        if pending is None:
            raise StateError("Action not found or expired.")

        logger.info(f"Pending action {message_id} cancelled")
        return GateOutcome(
            state=GateState.CANCELLED,
            message="Action cancelled.",
            intent=pending.intent,
            message_id=message_id,
        )

    async def _execute(self, intent: ParsedIntent) -> GateOutcome:
        params = intent.parameters
        success = True

        if intent.kind == IntentKind.START_ZONE:
            result = await self.actuator.start_zone(params["zoneId"], params["durationSec"], SOURCE_TAG)
            success = result.success
            if success:
                message = f"✓ Started Zone {params['zoneId']} for {_plural(params['durationSec'] // 60, 'minute')}"
            else:
                message = f"✗ Failed to start zone: {result.message}"

        elif intent.kind == IntentKind.STOP_ZONE and params["zoneId"] == ALL_ZONES:
            status = await self.actuator.get_status()
            if status.active_zone_id is None:
                message = "No zones are currently running"
            else:
                result = await self.actuator.stop_zone(status.active_zone_id)
                success = result.success
                message = "✓ Stopped all zones" if success else f"✗ Failed to stop zones: {result.message}"

        elif intent.kind == IntentKind.STOP_ZONE:
            result = await self.actuator.stop_zone(params["zoneId"])
            success = result.success
            message = f"✓ Stopped Zone {params['zoneId']}" if success else f"✗ Failed to stop zone: {result.message}"

        elif intent.kind == IntentKind.SET_RAIN_DELAY:
            result = await self.actuator.set_rain_delay(params["hours"])
            success = result.success
            if success:
                message = f"✓ Rain delay set for {_plural(params['hours'], 'hour')}"
            else:
                message = f"✗ Failed to set rain delay: {result.message}"

        elif intent.kind == IntentKind.CLEAR_RAIN_DELAY:
            result = await self.actuator.set_rain_delay(False)
            success = result.success
            message = "✓ Rain delay cleared" if success else f"✗ Failed to clear rain delay: {result.message}"

        elif intent.kind == IntentKind.CREATE_SCHEDULE:
            result = await self.actuator.create_schedule(
                params["zoneId"], params["startTime"], params["daysOfWeek"], params["durationSec"]
            )
            success = result.success
            if success:
                message = (
                    f"✓ Created schedule for Zone {params['zoneId']} at {params['startTime']} "
                    f"on {format_days(params['daysOfWeek'])} for {params['durationSec'] // 60} minutes"
                )
            else:
                message = f"✗ Failed to create schedule: {result.message}"

        else:
            status = await self.actuator.get_status()
            if status.active_zone_id is not None:
                minutes, seconds = divmod(status.time_remaining, 60)
                message = f"Zone {status.active_zone_id} is currently running with {minutes}m {seconds}s remaining."
            else:
                message = "No zones are currently running."
            if status.rain_delay.is_active:
                message += f" Rain delay is active for {_plural(status.rain_delay.hours_remaining, 'more hour')}."

        logger.info(f"[{SOURCE_TAG}] {intent.kind.value} executed: {message}")
        return GateOutcome(
            state=GateState.COMPLETED,
            message=message,
            intent=intent,
            action_executed=True,
            success=success,
        )
