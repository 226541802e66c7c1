"""
Property-based tests for run history storage.

Tests identity assignment, ordering, filtering, deletion and retention using
hypothesis.
"""

import json
import os
import stat
import tempfile
from pathlib import Path

import allure
import pytest
from hypothesis import given, settings, strategies as st

from teleprompter.history import RunStore, TestRun


# Strategies for generating test data

prompt_id_strategy = st.sampled_from(["a", "b", "c", "chat:SystemPrompt"])


@st.composite
def run_payload_strategy(draw):
    """Generate the caller-supplied fields of a run."""
    return {
        "prompt_id": draw(prompt_id_strategy),
        "prompt_version": draw(st.integers(min_value=1, max_value=50)),
        "model": draw(st.sampled_from(["openai/gpt-4o", "anthropic/claude-sonnet-4"])),
        "variables": draw(st.dictionaries(
            st.text(alphabet="abcxyz_", min_size=1, max_size=6),
            st.one_of(st.text(max_size=10), st.booleans(), st.lists(st.text(max_size=5), max_size=3)),
            max_size=3
        )),
        "output": draw(st.text(max_size=40)),
    }


def _store(directory: str, cap: int = 100) -> RunStore:
    return RunStore(path=Path(directory) / "history.json", max_runs_per_prompt=cap)


@pytest.fixture
def store(tmp_path):
    """A run store backed by a temporary file."""
    return RunStore(path=tmp_path / "history.json")


@allure.feature("Run History")
@allure.story("Append assigns identity")
@allure.severity(allure.severity_level.CRITICAL)
def test_append_assigns_distinct_ids(store):
    """Appending the same payload twice gives two runs with distinct IDs."""
    first = store.save_run("p", 1, "openai/gpt-4o", {"x": "1"}, "out")
    second = store.save_run("p", 1, "openai/gpt-4o", {"x": "1"}, "out")

    assert first.id != second.id
    assert first.timestamp.endswith("Z")
    assert len(store.list_runs()) == 2


@allure.feature("Run History")
@allure.story("Newest first")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=30, deadline=None)
@given(payloads=st.lists(run_payload_strategy(), min_size=1, max_size=8))
def test_list_is_newest_first(payloads):
    """Listing returns runs in reverse order of appending, with all fields kept."""
    with tempfile.TemporaryDirectory() as directory:
        store = _store(directory)
        saved = [store.save_run(**payload) for payload in payloads]

        listed = store.list_runs()

        assert [run.id for run in listed] == [run.id for run in reversed(saved)]
        assert listed == list(reversed(saved))


@allure.feature("Run History")
@allure.story("Filter by prompt")
@allure.severity(allure.severity_level.CRITICAL)
def test_filter_by_prompt(store):
    """Filtering keeps only the prompt's runs, newest first."""
    first = store.save_run("a", 1, "m", output="1")
    store.save_run("b", 1, "m", output="2")
    third = store.save_run("a", 2, "m", output="3")

    runs = store.list_runs("a")

    assert [run.id for run in runs] == [third.id, first.id]
    assert store.list_runs("missing") == []


@allure.feature("Run History")
@allure.story("Filter by prompt")
@allure.severity(allure.severity_level.NORMAL)
@settings(max_examples=30, deadline=None)
@given(payloads=st.lists(run_payload_strategy(), max_size=8), prompt_id=prompt_id_strategy)
def test_filter_is_subsequence(payloads, prompt_id):
    """A filtered list is the full list restricted to one prompt ID."""
    with tempfile.TemporaryDirectory() as directory:
        store = _store(directory)
        for payload in payloads:
            store.save_run(**payload)

        expected = [run for run in store.list_runs() if run.prompt_id == prompt_id]

        assert store.list_runs(prompt_id) == expected


@allure.feature("Run History")
@allure.story("Delete")
@allure.severity(allure.severity_level.NORMAL)
def test_delete_run(store):
    """Deleting a run removes only that run."""
    keep = store.save_run("a", 1, "m")
    drop = store.save_run("a", 1, "m")

    assert store.delete_run(drop.id) is True
    assert store.list_runs() == [keep]
    assert store.get_run(drop.id) is None
    assert store.get_run(keep.id) == keep


@allure.feature("Run History")
@allure.story("Delete unknown ID")
@allure.severity(allure.severity_level.CRITICAL)
def test_delete_unknown_is_noop(store):
    """Deleting an unknown ID leaves the log unchanged and does not raise."""
    store.save_run("a", 1, "m", output="x")
    before = store.path.read_text(encoding="utf-8")

    assert store.delete_run("no-such-id") is False
    assert store.path.read_text(encoding="utf-8") == before


@allure.feature("Run History")
@allure.story("Delete unknown ID")
@allure.severity(allure.severity_level.MINOR)
def test_delete_on_missing_file(store):
    """Deleting from a store with no file does not create one."""
    assert store.delete_run("anything") is False
    assert not store.path.exists()


@allure.feature("Run History")
@allure.story("Retention cap")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=20, deadline=None)
@given(cap=st.integers(min_value=1, max_value=5), extra=st.integers(min_value=1, max_value=4))
def test_retention_cap(cap, extra):
    """Appending past the cap keeps the newest runs of that prompt only."""
    with tempfile.TemporaryDirectory() as directory:
        store = _store(directory, cap=cap)
        other = store.save_run("other", 1, "m")
        saved = [store.save_run("p", 1, "m", output=str(i)) for i in range(cap + extra)]

        kept = store.list_runs("p")

        assert len(kept) == cap
        assert [run.id for run in kept] == [run.id for run in reversed(saved[-cap:])]
        assert store.list_runs("other") == [other]


@allure.feature("Run History")
@allure.story("Default retention cap")
@allure.severity(allure.severity_level.NORMAL)
def test_default_cap_is_one_hundred(store):
    """The default store keeps 100 runs per prompt."""
    assert store.max_runs_per_prompt == 100


@allure.feature("Run History")
@allure.story("Corrupt history file")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.parametrize("content", ["{not json", '{"id": "x"}', "", "\xff\xfe"])
def test_corrupt_file_reads_as_empty(tmp_path, content):
    """An unparseable or non-list history file reads as an empty log."""
    path = tmp_path / "history.json"
    path.write_text(content, encoding="latin-1")
    store = RunStore(path=path)

    assert store.list_runs() == []

    run = store.save_run("a", 1, "m")
    assert store.list_runs() == [run]


@allure.feature("Run History")
@allure.story("Malformed entries")
@allure.severity(allure.severity_level.NORMAL)
def test_malformed_entries_skipped(tmp_path):
    """Entries missing required fields are skipped; valid ones are kept."""
    good = TestRun("1", "2024-01-01T00:00:00.000Z", "a", 3, "m", {"x": "y"}, "out")
    path = tmp_path / "history.json"
    path.write_text(json.dumps([
        good.to_dict(),
        {"id": "2"},
        "junk",
        {**good.to_dict(), "id": "3", "promptVersion": "not a number"},
    ]), encoding="utf-8")

    assert RunStore(path=path).list_runs() == [good]


@allure.feature("Run History")
@allure.story("Stored layout")
@allure.severity(allure.severity_level.NORMAL)
def test_stored_layout(store):
    """Runs are stored as a JSON array using camelCase field names."""
    run = store.save_run("chat:Greeting", 4, "openai/gpt-4o", {"formal": True}, "Hello")

    data = json.loads(store.path.read_text(encoding="utf-8"))

    assert data == [{
        "id": run.id,
        "timestamp": run.timestamp,
        "promptId": "chat:Greeting",
        "promptVersion": 4,
        "model": "openai/gpt-4o",
        "variables": {"formal": True},
        "output": "Hello",
    }]


@allure.feature("Run History")
@allure.story("Private file")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
def test_history_file_is_private(tmp_path):
    """The history file and its parent directory are created; the file is owner-only."""
    path = tmp_path / "nested" / "history.json"
    path.parent.mkdir()
    path.write_text("[]", encoding="utf-8")
    os.chmod(path, 0o644)

    RunStore(path=path).save_run("a", 1, "m")

    assert stat.S_IMODE(path.stat().st_mode) == 0o600


@allure.feature("Run History")
@allure.story("Private file")
@allure.severity(allure.severity_level.MINOR)
def test_missing_directory_created(tmp_path):
    """Saving creates missing parent directories."""
    path = tmp_path / "a" / "b" / "history.json"

    RunStore(path=path).save_run("a", 1, "m")

    assert path.exists()


@allure.feature("Run History")
@allure.story("Injected identity and clock")
@allure.severity(allure.severity_level.MINOR)
def test_injected_id_and_clock(tmp_path):
    """IDs and timestamps come from the injected factories."""
    ids = iter(["run-1", "run-2"])
    store = RunStore(
        path=tmp_path / "history.json",
        id_factory=lambda: next(ids),
        clock=lambda: "2024-05-01T09:30:00.000Z"
    )

    run = store.save_run("a", 1, "m")

    assert run.id == "run-1"
    assert run.timestamp == "2024-05-01T09:30:00.000Z"
