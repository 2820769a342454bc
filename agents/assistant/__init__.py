"""
Chat assistant package
"""

from .agent import AssistantAgent
from .actuation import ActuationLayer, SimulatedController
from .conversation import ConversationStore
from .gate import ConfirmationGate
from .intents import IntentClassifier, IntentKind, ParsedIntent

__all__ = [
    "AssistantAgent", "ActuationLayer", "SimulatedController", "ConversationStore",
    "ConfirmationGate", "IntentClassifier", "IntentKind", "ParsedIntent",
]
