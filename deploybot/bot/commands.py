"""Bot command vocabularies and parsing.

Commands look like ``/name`` or ``/name argument``; a ``@botname`` suffix on
the command (as sent in group chats) is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union


ArgumentKind = Literal["none", "text", "index"]


@dataclass(frozen=True)
class CommandSpec:
    name: str
    description: str
    argument: ArgumentKind = "none"


@dataclass(frozen=True)
class Command:
    name: str
    argument: Union[str, int, None] = None


class Vocabulary:
    """The set of commands accepted in one dialogue state."""

    PREFIX = "/"

    def __init__(self, specs: list[CommandSpec]):
        self.specs = {spec.name: spec for spec in specs}

    def parse(self, text: str) -> Command | None:
        """Parse message text; None when it is not a valid command here."""
        text = text.strip()
        if not text.startswith(self.PREFIX):
            return None

        head, _, rest = text.partition(" ")
        name = head[len(self.PREFIX):].split("@", 1)[0].lower()
        spec = self.specs.get(name)
        if spec is None:
            return None

        rest = rest.strip()
        if spec.argument == "text":
            if not rest:
                return None
            return Command(name, rest)
        if spec.argument == "index":
            if not (rest.isascii() and rest.isdigit()):
                return None
            return Command(name, int(rest))
        return Command(name)

    def descriptions(self) -> str:
        lines = ["These commands are supported:"]
        for spec in self.specs.values():
            lines.append(f"{self.PREFIX}{spec.name} - {spec.description}")
        return "\n".join(lines)


GENERAL_COMMANDS = Vocabulary([
    CommandSpec("help", "display this text."),
    CommandSpec("list", "display all configured repos."),
    CommandSpec("today", "display all jobs that were started today."),
    CommandSpec(
        "create",
        "create new repo in the following format: /create &lt;repo_name&gt;\n"
        "i.e. /create Turbo Incubator Prototype",
        argument="text",
    ),
    CommandSpec(
        "select_repo",
        "select repo for manipulation by index in the following format: /select_repo &lt;index&gt;\n"
        "i.e. /select_repo 1",
        argument="index",
    ),
    CommandSpec("reset", "delete all repos of this chat and start over."),
])

REPO_COMMANDS = Vocabulary([
    CommandSpec("help", "display this text."),
    CommandSpec("get_info", "display current repo info."),
    CommandSpec("today", "display all jobs that were started today for current repo."),
    CommandSpec("running", "display all running jobs for current repo."),
    CommandSpec("latest", "display the latest job of current repo."),
    CommandSpec("rename", "rename current repo: /rename &lt;new_name&gt;", argument="text"),
    CommandSpec("delete", "delete selected repo."),
    CommandSpec("cancel", "deselect current repo."),
])
