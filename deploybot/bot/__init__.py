from deploybot.bot.dispatcher import ChatDispatcher
from deploybot.bot.engine import DialogueEngine
from deploybot.bot.state import ConfiguringState, ConversationState, SelectedState, StartState
from deploybot.bot.storage import (
    DialogueStorage,
    InMemoryDialogueStorage,
    RedisDialogueStorage,
    get_dialogue_storage,
)

__all__ = [
    "ChatDispatcher",
    "ConfiguringState",
    "ConversationState",
    "DialogueEngine",
    "DialogueStorage",
    "InMemoryDialogueStorage",
    "RedisDialogueStorage",
    "SelectedState",
    "StartState",
    "get_dialogue_storage",
]
