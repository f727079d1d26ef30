"""fschat - resilient client core for filesystem chat sessions."""

from .client import ChatClient, Snapshot
from .commands import CommandExtractor, ExtractionResult, extract_commands
from .config import Settings, get_settings
from .connection import ConnectionManager
from .models import Command, CommandResult, ConnectionPhase, Message, ProcessingState, ProcessingStatus, Role
from .store import MessageStore
from .tracker import ProcessingStateTracker

__version__ = "0.1.0"

__all__ = [
    "ChatClient",
    "Command",
    "CommandExtractor",
    "CommandResult",
    "ConnectionManager",
    "ConnectionPhase",
    "ExtractionResult",
    "Message",
    "MessageStore",
    "ProcessingState",
    "ProcessingStateTracker",
    "ProcessingStatus",
    "Role",
    "Settings",
    "Snapshot",
    "extract_commands",
    "get_settings",
]
