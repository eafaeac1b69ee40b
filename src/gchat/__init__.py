"""gchat - chat with Grok by editing a text file."""

from .conversation import Conversation, Message, build_conversation
from .document import Role, Turn, commit, has_pending_user_turn, parse
from .exchange import ExchangeOrchestrator, ExchangeOutcome

__version__ = "0.1.0"

__all__ = [
    "Conversation",
    "ExchangeOrchestrator",
    "ExchangeOutcome",
    "Message",
    "Role",
    "Turn",
    "build_conversation",
    "commit",
    "has_pending_user_turn",
    "parse",
]
