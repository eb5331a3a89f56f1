"""Tests for the conflict resolution session and its resolver."""

import asyncio

import pytest

from fakes import FakeDriver, ScriptedPrompter, conflicted
from gittyup.session.resolution import (
    ConflictResolutionSession,
    ConflictResolver,
    SessionStatus,
)


def make_resolver(files, prompter, ai=None, ai_mode="suggest",
                  operation="merge"):
    if operation == "merge":
        driver = FakeDriver(name="api", merge_conflicts=files)
        driver.merge("develop", "main")
    else:
        driver = FakeDriver(name="api", pick_conflicts={"abc": files})
        driver.cherry_pick(["abc"], "main")
    resolver = ConflictResolver(
        driver, prompter, ai_resolve=ai, ai_mode=ai_mode
    )
    session = resolver.start(operation, "develop", "main")
    return driver, resolver, session


def run(resolver, session):
    return asyncio.run(resolver.run(session))


class FakeAi:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    async def __call__(self, file, mode):
        self.calls.append((file.path, mode))
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


# ---------------------------------------------------------------------------
# session transitions
# ---------------------------------------------------------------------------

def make_session():
    return ConflictResolutionSession(
        repo="api",
        operation="merge",
        source_branch="develop",
        target_branch="main",
        files=[conflicted("a.py"), conflicted("b.py")],
    )


def test_session_starts_pending():
    session = make_session()

    assert session.status == SessionStatus.PENDING
    assert [f.path for f in session.unresolved] == ["a.py", "b.py"]
    assert not session.is_complete


def test_session_resolves_to_completion():
    session = make_session()
    session.begin()
    session.mark_resolved("a.py", "A")
    session.mark_resolved("b.py", "B")
    session.complete()

    assert session.status == SessionStatus.RESOLVED
    assert session.resolved_files == ["a.py", "b.py"]
    assert session.files[0].resolved == "A"


def test_mark_resolved_is_idempotent():
    session = make_session()
    session.begin()
    session.mark_resolved("a.py", "A")
    session.mark_resolved("a.py", "A2")

    assert session.resolved_files == ["a.py"]
    assert session.files[0].resolved == "A2"


def test_complete_requires_every_file():
    session = make_session()
    session.begin()
    session.mark_resolved("a.py")

    with pytest.raises(ValueError, match="unresolved"):
        session.complete()


def test_mark_resolved_rejects_unknown_path():
    session = make_session()
    session.begin()

    with pytest.raises(ValueError, match="not conflicted"):
        session.mark_resolved("c.py")


def test_transitions_are_guarded():
    session = make_session()

    with pytest.raises(ValueError):
        session.mark_resolved("a.py")
    with pytest.raises(ValueError):
        session.escalate("branch")

    session.begin()
    with pytest.raises(ValueError):
        session.begin()


def test_reset_returns_to_pending():
    session = make_session()
    session.begin()
    session.mark_resolved("a.py", "A")
    session.reset()

    assert session.status == SessionStatus.PENDING
    assert session.resolved_files == []
    assert session.files[0].resolved is None


# ---------------------------------------------------------------------------
# resolver
# ---------------------------------------------------------------------------

def test_ours_and_theirs_resolve_every_file():
    files = [conflicted("a.py"), conflicted("b.py"), conflicted("c.py")]
    prompter = ScriptedPrompter(selects=["ours", "theirs", "ours"])
    driver, resolver, session = make_resolver(files, prompter)

    run(resolver, session)

    assert session.status == SessionStatus.RESOLVED
    assert session.resolved_files == ["a.py", "b.py", "c.py"]
    assert driver.staged == {"a.py": "ours", "b.py": "theirs", "c.py": "ours"}
    assert "commit_resolution" in driver.ops
    assert session.commit == driver.branches["main"]


def test_merge_commit_message():
    prompter = ScriptedPrompter(selects=["ours"])
    driver, resolver, session = make_resolver([conflicted("a.py")], prompter)

    run(resolver, session)

    [message] = [c[1] for c in driver.calls if c[0] == "commit_resolution"]
    assert message == "resolve: merge develop → main via gittyup"


def test_declining_commit_leaves_resolution_staged():
    prompter = ScriptedPrompter(selects=["theirs"], confirms=[False])
    driver, resolver, session = make_resolver([conflicted("a.py")], prompter)

    run(resolver, session)

    assert session.status == SessionStatus.RESOLVED
    assert session.commit is None
    assert "commit_resolution" not in driver.ops


def test_cherry_pick_resolution_continues_the_pick():
    prompter = ScriptedPrompter(selects=["theirs"])
    driver, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, operation="cherry-pick"
    )

    run(resolver, session)

    assert "cherry_pick_continue" in driver.ops
    assert "commit_resolution" not in driver.ops
    assert session.commit is not None


def test_manual_mode_hides_ai_options():
    prompter = ScriptedPrompter(selects=["ours"])
    _, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=FakeAi(), ai_mode="manual"
    )

    run(resolver, session)

    _, choices = prompter.menus[0]
    assert "ai-auto" not in choices
    assert "ai-suggest" not in choices
    assert choices[:2] == ["ours", "theirs"]


def test_ai_options_need_a_resolver():
    prompter = ScriptedPrompter(selects=["ours"])
    _, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=None, ai_mode="auto"
    )

    run(resolver, session)

    assert "ai-auto" not in prompter.menus[0][1]


def test_ai_options_listed_first_when_enabled():
    prompter = ScriptedPrompter(selects=["ours"])
    _, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=FakeAi()
    )

    run(resolver, session)

    assert prompter.menus[0][1][:2] == ["ai-auto", "ai-suggest"]


def test_ai_auto_stages_the_result():
    ai = FakeAi("merged\n")
    prompter = ScriptedPrompter(selects=["ai-auto"])
    driver, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=ai
    )

    run(resolver, session)

    assert ai.calls == [("a.py", "auto")]
    assert driver.staged["a.py"] == "merged\n"
    assert session.files[0].resolved == "merged\n"


def test_ai_auto_failure_presents_the_menu_again():
    """An AI error or empty answer is a non-answer, not a crash."""
    ai = FakeAi(None, RuntimeError("provider down"))
    prompter = ScriptedPrompter(selects=["ai-auto", "ai-auto", "theirs"])
    driver, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=ai
    )

    run(resolver, session)

    file_menus = [m for m in prompter.menus if m[0].startswith("How to")]
    assert len(file_menus) == 3
    assert driver.staged == {"a.py": "theirs"}
    assert session.status == SessionStatus.RESOLVED


def test_ai_suggest_accept():
    prompter = ScriptedPrompter(selects=["ai-suggest", "accept"])
    driver, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=FakeAi("suggested\n")
    )

    run(resolver, session)

    assert driver.staged["a.py"] == "suggested\n"
    assert any("suggested" in text for text in prompter.shown)


def test_ai_suggest_edit_starts_from_suggestion():
    prompter = ScriptedPrompter(
        selects=["ai-suggest", "edit"], edits=["tweaked\n"]
    )
    driver, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=FakeAi("suggested\n")
    )

    run(resolver, session)

    assert prompter.edited_from == ["suggested\n"]
    assert driver.staged["a.py"] == "tweaked\n"


def test_ai_suggest_reject_presents_the_menu_again():
    prompter = ScriptedPrompter(selects=["ai-suggest", "reject", "ours"])
    driver, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, ai=FakeAi("suggested\n")
    )

    run(resolver, session)

    assert driver.staged == {"a.py": "ours"}


def test_manual_edit_starts_from_ours():
    prompter = ScriptedPrompter(selects=["manual"], edits=["by hand\n"])
    driver, resolver, session = make_resolver(
        [conflicted("a.py", ours="mine\n")], prompter
    )

    run(resolver, session)

    assert prompter.edited_from == ["mine\n"]
    assert driver.staged["a.py"] == "by hand\n"


@pytest.mark.parametrize("edited", ["", "   \n", None])
def test_empty_edit_stages_nothing(edited):
    prompter = ScriptedPrompter(
        selects=["manual", "theirs"], edits=[edited]
    )
    driver, resolver, session = make_resolver([conflicted("a.py")], prompter)

    run(resolver, session)

    assert driver.staged == {"a.py": "theirs"}
    assert "resolve_file" not in driver.ops


def test_view_full_shows_all_sides():
    prompter = ScriptedPrompter(selects=["view-full", "ours"])
    _, resolver, session = make_resolver(
        [conflicted("a.py", ours="O\n", theirs="T\n", base="B\n")], prompter
    )

    run(resolver, session)

    full = next(text for text in prompter.shown if "OURS (full)" in text)
    assert "O\n" in full and "B\n" in full and "T\n" in full


def test_preview_truncates_long_files():
    ours = "".join(f"line {i}\n" for i in range(20))
    prompter = ScriptedPrompter(selects=["ours"])
    _, resolver, session = make_resolver(
        [conflicted("a.py", ours=ours)], prompter
    )

    run(resolver, session)

    assert any("(12 more lines)" in text for text in prompter.shown)


def test_skip_then_leave_keeps_partial_resolution():
    files = [conflicted("a.py"), conflicted("b.py")]
    prompter = ScriptedPrompter(selects=["ours", "skip", "leave"])
    driver, resolver, session = make_resolver(files, prompter)

    run(resolver, session)

    assert session.status == SessionStatus.IN_PROGRESS
    assert session.resolved_files == ["a.py"]
    assert [f.path for f in session.unresolved] == ["b.py"]
    assert "commit_resolution" not in driver.ops
    assert "abort_merge" not in driver.ops


def test_retry_revisits_only_unresolved_files():
    files = [conflicted("a.py"), conflicted("b.py")]
    prompter = ScriptedPrompter(selects=["ours", "skip", "retry", "theirs"])
    driver, resolver, session = make_resolver(files, prompter)

    run(resolver, session)

    assert session.status == SessionStatus.RESOLVED
    assert driver.staged == {"a.py": "ours", "b.py": "theirs"}


def test_abort_rolls_back_merge():
    prompter = ScriptedPrompter(selects=["skip", "abort"])
    driver, resolver, session = make_resolver([conflicted("a.py")], prompter)

    run(resolver, session)

    assert "abort_merge" in driver.ops
    assert session.status == SessionStatus.PENDING


def test_abort_rolls_back_cherry_pick():
    prompter = ScriptedPrompter(selects=["skip", "abort"])
    driver, resolver, session = make_resolver(
        [conflicted("a.py")], prompter, operation="cherry-pick"
    )

    run(resolver, session)

    assert "cherry_pick_abort" in driver.ops


def test_escalate_preserves_unresolved_work():
    prompter = ScriptedPrompter(selects=["skip", "escalate"])
    driver, resolver, session = make_resolver([conflicted("a.py")], prompter)
    tip = driver.branches["main"]

    run(resolver, session)

    assert session.status == SessionStatus.ESCALATED
    assert session.escalation_branch == (
        "conflict-resolution/api-main-2024-01-01T00-00-00"
    )
    assert driver.ops[-2:] == [
        "create_escalation_branch", "preserve_unresolved"
    ]
    assert driver.branches["main"] == tip
