import pytest

from deploybot.bot.commands import GENERAL_COMMANDS, REPO_COMMANDS
from deploybot.bot.engine import (
    DELETED_TEXT,
    DESELECTED_TEXT,
    INVALID_COMMAND_TEXT,
    NO_JOB_TODAY_TEXT,
    NO_LATEST_JOB_TEXT,
    NO_REPO_TEXT,
    NO_RUNNING_JOB_TEXT,
    RENAMED_TEXT,
    REPO_NOT_FOUND_TEXT,
    RESET_TEXT,
    WELCOME_TEXT,
    DialogueEngine,
)
from deploybot.bot.state import ConfiguringState, SelectedState, StartState
from deploybot.bot.storage import InMemoryDialogueStorage
from deploybot.schemas import DeployStatus

from conftest import CHAT_ID, create_job, finish_job, get_job, get_repo


async def _say(engine: DialogueEngine, chat, text: str) -> list[str]:
    """Send one message and return the replies it produced."""
    before = len(chat.sent)
    await engine.handle(CHAT_ID, text)
    return [reply for _, reply in chat.sent[before:]]


async def _started(engine: DialogueEngine, chat) -> None:
    await _say(engine, chat, "hi")


async def _with_repos(engine: DialogueEngine, chat, *names: str) -> list[str]:
    await _started(engine, chat)
    for name in names:
        await _say(engine, chat, f"/create {name}")
    state = await engine.storage.get(CHAT_ID)
    return list(state.repos)


# =============================================================================
# Start
# =============================================================================

async def test_first_message_welcomes_and_sets_menu(engine, chat) -> None:
    replies = await _say(engine, chat, "anything at all")

    assert replies == [WELCOME_TEXT]
    assert chat.menus == [CHAT_ID]
    assert await engine.storage.get(CHAT_ID) == ConfiguringState(repos=[])


# =============================================================================
# Configuring
# =============================================================================

async def test_help_lists_general_commands(engine, chat) -> None:
    await _started(engine, chat)

    replies = await _say(engine, chat, "/help")

    assert replies == [GENERAL_COMMANDS.descriptions()]
    assert replies[0].startswith("These commands are supported:")


async def test_list_without_repos(engine, chat) -> None:
    await _started(engine, chat)

    assert await _say(engine, chat, "/list") == [NO_REPO_TEXT]


async def test_create_and_select_scenario(engine, chat, db) -> None:
    await _started(engine, chat)

    replies = await _say(engine, chat, "/create Foo")

    state = await engine.storage.get(CHAT_ID)
    assert isinstance(state, ConfiguringState)
    assert len(state.repos) == 1
    repo_id = state.repos[0]
    assert replies == ["Successfully added repo: Foo", f"key: <code>{repo_id}</code>"]

    repo = await get_repo(db, repo_id)
    assert repo.name == "Foo"
    assert repo.chat_binding == CHAT_ID
    assert repo.deploy_status is DeployStatus.RUNNING

    assert await _say(engine, chat, "/list") == ["Configured repos:\n1. Foo (running)"]

    assert await _say(engine, chat, "/select_repo 2") == [REPO_NOT_FOUND_TEXT]
    assert await engine.storage.get(CHAT_ID) == state

    assert await _say(engine, chat, "/select_repo 1") == ["Selected repo: Foo"]
    assert await engine.storage.get(CHAT_ID) == SelectedState(repos=[repo_id], selected=repo_id)


async def test_select_repo_zero_is_out_of_range(engine, chat) -> None:
    await _with_repos(engine, chat, "Foo")

    assert await _say(engine, chat, "/select_repo 0") == [REPO_NOT_FOUND_TEXT]


async def test_list_keeps_creation_order(engine, chat) -> None:
    await _with_repos(engine, chat, "Foo", "Bar", "Baz")

    assert await _say(engine, chat, "/list") == ["Configured repos:\n1. Foo (running)\n2. Bar (running)\n3. Baz (running)"]


async def test_create_requires_a_name(engine, chat) -> None:
    await _started(engine, chat)

    assert await _say(engine, chat, "/create") == [INVALID_COMMAND_TEXT]
    assert await _say(engine, chat, "/create    ") == [INVALID_COMMAND_TEXT]
    assert await engine.storage.get(CHAT_ID) == ConfiguringState(repos=[])


async def test_repo_names_are_escaped_in_replies(engine, chat) -> None:
    await _started(engine, chat)

    replies = await _say(engine, chat, "/create <b>Foo</b>")

    assert replies[0] == "Successfully added repo: &lt;b&gt;Foo&lt;/b&gt;"


async def test_deploy_profile_creates_idle_repos(db, chat, settings, clock) -> None:
    engine = DialogueEngine(
        db=db,
        storage=InMemoryDialogueStorage(),
        chat=chat,
        settings=settings.model_copy(update={"status_profile": "deploy"}),
        clock=clock,
    )
    [repo_id] = await _with_repos(engine, chat, "Foo")

    assert (await get_repo(db, repo_id)).deploy_status is DeployStatus.IDLE


@pytest.mark.parametrize("text", ["hello", "/", "/unknown", "/select_repo", "/select_repo one", "/select_repo ²", "/rename Foo", "/get_info"])
async def test_invalid_commands_leave_state_alone(engine, chat, text: str) -> None:
    await _with_repos(engine, chat, "Foo")
    before = await engine.storage.get(CHAT_ID)

    assert await _say(engine, chat, text) == [INVALID_COMMAND_TEXT]
    assert await engine.storage.get(CHAT_ID) == before


async def test_reset_deletes_repos_and_starts_over(engine, chat, db) -> None:
    repo_ids = await _with_repos(engine, chat, "Foo", "Bar")

    assert await _say(engine, chat, "/reset") == [RESET_TEXT]

    assert await engine.storage.get(CHAT_ID) == StartState()
    for repo_id in repo_ids:
        assert await get_repo(db, repo_id) is None

    assert await _say(engine, chat, "/list") == [WELCOME_TEXT]


async def test_general_today_lists_jobs_of_all_repos(engine, chat, db, clock) -> None:
    foo, bar = await _with_repos(engine, chat, "Foo", "Bar")
    await create_job(db, foo, 1, started_at=clock.now.replace(hour=8), triggered_by="alice")
    await create_job(db, bar, 2, started_at=clock.now.replace(hour=9))
    await create_job(db, bar, 3, started_at=clock.now.replace(day=17))

    [reply] = await _say(engine, chat, "/today")

    lines = reply.split("\n")
    assert lines[0] == "Jobs started today:"
    assert len(lines) == 3
    assert "Foo #1" in reply and "by alice" in reply
    assert "Bar #2" in reply
    assert "#3" not in reply


async def test_general_today_without_jobs(engine, chat) -> None:
    await _with_repos(engine, chat, "Foo")

    assert await _say(engine, chat, "/today") == [NO_JOB_TODAY_TEXT]


# =============================================================================
# Selected
# =============================================================================

async def _selected(engine: DialogueEngine, chat, *names: str) -> list[str]:
    repo_ids = await _with_repos(engine, chat, *names)
    await _say(engine, chat, "/select_repo 1")
    return repo_ids


async def test_repo_help_lists_repo_commands(engine, chat) -> None:
    await _selected(engine, chat, "Foo")

    assert await _say(engine, chat, "/help") == [REPO_COMMANDS.descriptions()]


async def test_get_info_shows_name_status_and_key(engine, chat) -> None:
    [repo_id] = await _selected(engine, chat, "Foo")

    assert await _say(engine, chat, "/get_info") == [
        f"name: Foo\nstatus: running\nkey: <tg-spoiler>{repo_id}</tg-spoiler>"
    ]


async def test_rename_updates_the_repo(engine, chat, db) -> None:
    [repo_id] = await _selected(engine, chat, "Foo")

    assert await _say(engine, chat, "/rename Bar Baz") == [RENAMED_TEXT]
    assert (await get_repo(db, repo_id)).name == "Bar Baz"
    assert (await _say(engine, chat, "/get_info"))[0].startswith("name: Bar Baz\n")


async def test_rename_needs_a_name(engine, chat) -> None:
    await _selected(engine, chat, "Foo")

    assert await _say(engine, chat, "/rename") == [INVALID_COMMAND_TEXT]


async def test_delete_removes_repo_and_its_jobs(engine, chat, db, clock) -> None:
    foo, bar = await _selected(engine, chat, "Foo", "Bar")
    job = await create_job(db, foo, 1, started_at=clock())

    assert await _say(engine, chat, "/delete") == [DELETED_TEXT]

    assert await get_repo(db, foo) is None
    assert await get_job(db, job.seq) is None
    assert await engine.storage.get(CHAT_ID) == ConfiguringState(repos=[bar])
    assert await _say(engine, chat, "/list") == ["Configured repos:\n1. Bar (running)"]


async def test_cancel_returns_to_configuring(engine, chat) -> None:
    repo_ids = await _selected(engine, chat, "Foo")
    menus_before = len(chat.menus)

    assert await _say(engine, chat, "/cancel") == [DESELECTED_TEXT]
    assert await engine.storage.get(CHAT_ID) == ConfiguringState(repos=repo_ids)
    assert len(chat.menus) == menus_before + 1


async def test_general_commands_are_invalid_while_selected(engine, chat) -> None:
    await _selected(engine, chat, "Foo")

    assert await _say(engine, chat, "/list") == [INVALID_COMMAND_TEXT]
    assert await _say(engine, chat, "/create Bar") == [INVALID_COMMAND_TEXT]


async def test_job_listings_for_selected_repo(engine, chat, db, clock) -> None:
    [repo_id] = await _selected(engine, chat, "Foo")

    assert await _say(engine, chat, "/running") == [NO_RUNNING_JOB_TEXT]
    assert await _say(engine, chat, "/latest") == [NO_LATEST_JOB_TEXT]
    assert await _say(engine, chat, "/today") == [NO_JOB_TODAY_TEXT]

    finished = await create_job(db, repo_id, 1, started_at=clock.now.replace(hour=7))
    await finish_job(db, finished.seq, DeployStatus.SUCCESS, 90)
    await create_job(db, repo_id, 2, started_at=clock.now.replace(hour=8))

    assert await _say(engine, chat, "/running") == [
        "Running jobs:\n#2: running, started 2026-10-18 08:30:00 UTC"
    ]
    assert await _say(engine, chat, "/latest") == [
        "Latest job:\n#2: running, started 2026-10-18 08:30:00 UTC"
    ]
    [today] = await _say(engine, chat, "/today")
    assert today.startswith("Jobs started today:\n")
    assert "#1: success, started 2026-10-18 07:30:00 UTC, took 1 minute(s)" in today
    assert "#2: running" in today
