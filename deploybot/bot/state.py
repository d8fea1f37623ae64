"""Conversation state for the dialogue engine.

One state per chat, a closed union discriminated by ``kind``:

Start --(any message)--> Configuring(repos)
Configuring --/select_repo--> Selected(repos, selected)
Selected --/cancel or /delete--> Configuring
Configuring --/reset--> Start
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class StartState(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["start"] = "start"


class ConfiguringState(BaseModel):
    """Working with the chat's repo list."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["configuring"] = "configuring"
    repos: list[str] = Field(default_factory=list)


class SelectedState(BaseModel):
    """One repo of the list selected for repo-scoped commands."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["selected"] = "selected"
    repos: list[str] = Field(default_factory=list)
    selected: str


ConversationState = Annotated[
    Union[StartState, ConfiguringState, SelectedState],
    Field(discriminator="kind"),
]

_state_adapter: TypeAdapter[ConversationState] = TypeAdapter(ConversationState)


def dump_state(state: ConversationState) -> str:
    return _state_adapter.dump_json(state).decode("utf-8")


def load_state(raw: str | bytes) -> ConversationState:
    return _state_adapter.validate_json(raw)
