import asyncio

import pytest

from cubox_tidy.errors import ConfigurationMissing, EmptyInput, ScopeMismatch, StaleAnchorError
from cubox_tidy.workspace import VaultWatcher

from conftest import write_note

CLIPPED = "# Title\ncubox://card/1\nbody\nhttps://source.example/a"


def _create_and_settle(plugin, rel, content):
    async def main():
        await plugin.vault.create(rel, content)
        await plugin.scheduler.drain()

    asyncio.run(main())
    return plugin.vault.read(rel)


def test_new_note_in_target_folder_is_stamped_and_stripped(plugin):
    text = _create_and_settle(plugin, "Cubox/clip.md", CLIPPED)
    assert text == "---\ncreated: 2024-05-01\n---\nbody"


def test_notes_outside_target_folder_are_ignored(plugin):
    assert _create_and_settle(plugin, "Other/clip.md", CLIPPED) == CLIPPED
    assert _create_and_settle(plugin, "Cubox/sub/clip.md", CLIPPED) == CLIPPED


def test_nothing_happens_without_target_folder(plugin):
    plugin.settings_store.update(target_folder="")
    assert _create_and_settle(plugin, "Cubox/clip.md", CLIPPED) == CLIPPED


def test_non_markdown_file_is_stamped_but_not_stripped(plugin):
    async def main():
        await plugin.vault.create("Cubox/clip.txt", "# Title")
        return plugin.scheduler.pending

    assert asyncio.run(main()) == 0
    assert plugin.vault.read("Cubox/clip.txt") == "---\ncreated: 2024-05-01\n---\n# Title"


def test_unload_stops_listening(plugin):
    plugin.on_unload()
    assert _create_and_settle(plugin, "Cubox/clip.md", CLIPPED) == CLIPPED


def test_format_active_note(plugin, vault_dir):
    write_note(vault_dir, "Cubox/a.md", CLIPPED)
    plugin.vault.set_active("Cubox/a.md")
    assert plugin.format_active_note() is True
    assert plugin.vault.read("Cubox/a.md") == "body"
    # Second run finds nothing to strip
    assert plugin.format_active_note() is False


def test_format_active_note_out_of_scope(plugin, vault_dir):
    write_note(vault_dir, "Other/a.md", CLIPPED)
    plugin.vault.set_active("Other/a.md")
    assert plugin.format_active_note() is None
    assert plugin.vault.read("Other/a.md") == CLIPPED
    assert plugin.notifier.latest().message.startswith(ScopeMismatch.notice)


def test_format_without_active_note(plugin):
    assert plugin.format_active_note() is None
    assert plugin.notifier.latest().message == "No active note"


def test_format_missing_active_note(plugin):
    plugin.vault.set_active("Cubox/gone.md")
    assert plugin.format_active_note() is None
    assert plugin.notifier.latest().note == "Cubox/gone.md"


def test_summarize_appends_section(plugin, vault_dir, fake_llm):
    write_note(vault_dir, "Cubox/n.md", "line1\nline2")
    outcome = asyncio.run(plugin.summarize_note("Cubox/n.md"))

    assert outcome.completed
    assert outcome.anchor_line == 3
    assert outcome.summary == "short summary"
    assert plugin.vault.read("Cubox/n.md") == "line1\nline2\n# 总结\n- short summary"
    assert fake_llm.prompts == ["用100 字以内总结下内容:\nline1\nline2"]
    assert fake_llm.api_keys == ["sk-test-1234567890"]
    assert plugin.notifier.latest().message == "Summary added"


def test_summarize_replaces_previous_summary(plugin, vault_dir):
    write_note(vault_dir, "Cubox/n.md", "intro\n# 总结\n- old summary\nafter")
    asyncio.run(plugin.summarize_note("Cubox/n.md"))
    assert plugin.vault.read("Cubox/n.md") == "intro\n# 总结\n- short summary\nafter"


def test_failed_request_leaves_placeholder(plugin, vault_dir, fake_llm):
    fake_llm.answer = None
    write_note(vault_dir, "Cubox/n.md", "line1\nline2")

    outcome = asyncio.run(plugin.summarize_note("Cubox/n.md"))
    assert not outcome.completed
    assert plugin.vault.read("Cubox/n.md") == "line1\nline2\n# 总结\n...generating..."

    plugin.vault.set_active("Cubox/n.md")
    assert asyncio.run(plugin.summarize_active_note()) is None


def test_empty_note_is_rejected(plugin, vault_dir, fake_llm):
    write_note(vault_dir, "Cubox/empty.md", "  \n")
    with pytest.raises(EmptyInput):
        asyncio.run(plugin.summarize_note("Cubox/empty.md"))
    assert plugin.vault.read("Cubox/empty.md") == "  \n"
    assert fake_llm.prompts == []


def test_missing_api_key(plugin, vault_dir, fake_llm):
    plugin.settings_store.update(api_key="")
    write_note(vault_dir, "Cubox/n.md", "text")
    with pytest.raises(ConfigurationMissing):
        asyncio.run(plugin.summarize_note("Cubox/n.md"))
    assert fake_llm.prompts == []


def test_summarize_out_of_scope(plugin, vault_dir):
    write_note(vault_dir, "Other/n.md", "text")
    with pytest.raises(ScopeMismatch):
        asyncio.run(plugin.summarize_note("Other/n.md"))
    assert plugin.vault.read("Other/n.md") == "text"


def test_edit_during_request_is_detected(plugin, vault_dir, fake_llm):
    path = write_note(vault_dir, "Cubox/n.md", "line1\nline2")

    def user_edits():
        path.write_text("new top line\n" + path.read_text(encoding="utf-8"), encoding="utf-8")

    fake_llm.during = user_edits
    with pytest.raises(StaleAnchorError):
        asyncio.run(plugin.summarize_note("Cubox/n.md"))
    assert plugin.vault.read("Cubox/n.md") == "new top line\nline1\nline2\n# 总结\n...generating..."


def test_unverified_anchor_overwrites_whatever_is_there(plugin, vault_dir, fake_llm):
    plugin.config.summary.verify_anchor = False
    path = write_note(vault_dir, "Cubox/n.md", "line1\nline2")
    fake_llm.during = lambda: path.write_text(
        "new top line\n" + path.read_text(encoding="utf-8"), encoding="utf-8"
    )
    outcome = asyncio.run(plugin.summarize_note("Cubox/n.md"))
    assert outcome.completed
    lines = plugin.vault.read("Cubox/n.md").split("\n")
    assert lines[outcome.anchor_line] == "- short summary"


def test_summarize_active_reports_errors(plugin):
    assert asyncio.run(plugin.summarize_active_note()) is None
    assert plugin.notifier.latest().message == "No active note"


def test_watched_files_in_target_folder_are_stamped(plugin, vault_dir):
    watcher = VaultWatcher(plugin.vault, folder="Cubox", interval=0)
    write_note(vault_dir, "Cubox/clip.txt", "plain")
    (vault_dir / "Cubox" / "image.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe")

    async def main():
        found = await watcher.poll_once()
        await plugin.scheduler.drain()
        return found

    assert asyncio.run(main()) == ["Cubox/clip.txt", "Cubox/image.png"]
    assert plugin.vault.read("Cubox/clip.txt") == "---\ncreated: 2024-05-01\n---\nplain"
    assert (vault_dir / "Cubox" / "image.png").read_bytes() == b"\x89PNG\r\n\x1a\n\xff\xfe"
