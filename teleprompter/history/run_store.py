"""
Run history storage for teleprompter.

Every completed prompt run is kept as an immutable record in a single JSON
file, newest first. Each prompt keeps at most ``MAX_RUNS_PER_PROMPT`` runs;
older runs of that prompt are dropped when new ones arrive.

The whole log is read, changed and written back on every mutation. Two
processes appending at the same time can lose one of the writes.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ..constants import HISTORY_FILE, MAX_RUNS_PER_PROMPT
from ..utils import generate_run_id, utc_timestamp, write_private_file


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TestRun:
    """A single completed run of a prompt against a model."""
    __test__ = False

    id: str
    timestamp: str
    prompt_id: str
    prompt_version: int
    model: str
    variables: dict = field(default_factory=dict)
    output: str = ""

    def to_dict(self) -> dict:
        """Convert to the stored JSON layout."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "promptId": self.prompt_id,
            "promptVersion": self.prompt_version,
            "model": self.model,
            "variables": self.variables,
            "output": self.output,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TestRun':
        """
        Create a TestRun from its stored JSON layout.

        Raises:
            KeyError: If a required field is missing
            TypeError: If ``data`` is not a mapping
            ValueError: If the version is not an integer
        """
        variables = data.get("variables") or {}
        return cls(
            id=str(data["id"]),
            timestamp=str(data["timestamp"]),
            prompt_id=str(data["promptId"]),
            prompt_version=int(data["promptVersion"]),
            model=str(data["model"]),
            variables=dict(variables) if isinstance(variables, dict) else {},
            output=str(data.get("output") or ""),
        )


class RunStore:
    """
    Persistent log of prompt runs.

    Provides append, filtered listing and deletion by ID, and enforces the
    per-prompt retention cap on every append.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        max_runs_per_prompt: int = MAX_RUNS_PER_PROMPT,
        id_factory: Callable[[], str] = generate_run_id,
        clock: Callable[[], str] = utc_timestamp
    ) -> None:
        """
        Initialize run store.

        Args:
            path: History file location
            max_runs_per_prompt: Number of runs kept per prompt ID
            id_factory: Produces a fresh run ID
            clock: Produces the current ISO-8601 timestamp
        """
        self._path = Path(path) if path else HISTORY_FILE
        self._max_runs_per_prompt = max_runs_per_prompt
        self._id_factory = id_factory
        self._clock = clock

    @property
    def path(self) -> Path:
        """History file location."""
        return self._path

    @property
    def max_runs_per_prompt(self) -> int:
        """Number of runs kept per prompt ID."""
        return self._max_runs_per_prompt

    def _read(self) -> list[TestRun]:
        """Read the log; a missing, unreadable or invalid file reads as empty."""
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable run history {self._path}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Ignoring run history {self._path}: expected a list")
            return []

        runs = []
        for entry in data:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping run history entry of type {type(entry).__name__}")
                continue
            try:
                runs.append(TestRun.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed run history entry: {e}")
        return runs

    def _write(self, runs: list[TestRun]) -> None:
        content = json.dumps([run.to_dict() for run in runs], indent=2)
        write_private_file(self._path, content)

    def _enforce_retention(self, runs: list[TestRun]) -> list[TestRun]:
        """Keep the newest runs of each prompt, dropping the rest."""
        counts: dict[str, int] = {}
        kept = []
        for run in runs:
            count = counts.get(run.prompt_id, 0)
            if count >= self._max_runs_per_prompt:
                continue
            counts[run.prompt_id] = count + 1
            kept.append(run)

        evicted = len(runs) - len(kept)
        if evicted:
            logger.debug(f"Evicted {evicted} old run(s) from history")
        return kept

    def save_run(
        self,
        prompt_id: str,
        prompt_version: int,
        model: str,
        variables: Optional[dict[str, Any]] = None,
        output: str = ""
    ) -> TestRun:
        """
        Record a completed run.

        Args:
            prompt_id: Prompt the run belongs to
            prompt_version: Version of the prompt template used
            model: Display ID of the model used
            variables: Values the template was compiled with
            output: Text produced by the model

        Returns:
            The stored run, with its new ID and timestamp
        """
        run = TestRun(
            id=self._id_factory(),
            timestamp=self._clock(),
            prompt_id=prompt_id,
            prompt_version=prompt_version,
            model=model,
            variables=dict(variables or {}),
            output=output,
        )

        runs = self._read()
        runs.insert(0, run)
        self._write(self._enforce_retention(runs))

        logger.debug(f"Saved run {run.id} for prompt {prompt_id}")
        return run

    def list_runs(self, prompt_id: Optional[str] = None) -> list[TestRun]:
        """
        List stored runs, newest first.

        Args:
            prompt_id: Only return runs of this prompt

        Returns:
            Matching runs
        """
        runs = self._read()
        if prompt_id is not None:
            return [run for run in runs if run.prompt_id == prompt_id]
        return runs

    def get_run(self, run_id: str) -> Optional[TestRun]:
        """
        Get a run by ID.

        Args:
            run_id: Run ID

        Returns:
            TestRun or None if not found
        """
        for run in self._read():
            if run.id == run_id:
                return run
        return None

    def delete_run(self, run_id: str) -> bool:
        """
        Delete a run by ID. Unknown IDs are ignored.

        Args:
            run_id: Run ID to delete

        Returns:
            True if a run was deleted
        """
        runs = self._read()
        remaining = [run for run in runs if run.id != run_id]
        if len(remaining) == len(runs):
            return False

        self._write(remaining)
        return True


_run_store: Optional[RunStore] = None


def get_run_store() -> RunStore:
    """Get the global run store instance."""
    global _run_store
    if _run_store is None:
        _run_store = RunStore()
    return _run_store
