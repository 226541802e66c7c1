"""
Prompt test runner for teleprompter.

Compiles a prompt template with the user's values, streams the result from
one or more models at the same time, and records every completed run in the
run history.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

import httpx

from .exceptions import ProviderError, TeleprompterError
from .history import RunStore, TestRun
from .llm import ModelInfo, ProviderRegistry
from .service.models import Prompt
from .template import (
    CompiledTemplate,
    VariableDeclaration,
    build_values,
    extract_variables,
)


logger = logging.getLogger(__name__)

ChunkCallback = Callable[[ModelInfo, str], None]


@dataclass
class RunResult:
    """Outcome of running a prompt against one model."""
    model: ModelInfo
    output: str = ""
    run: Optional[TestRun] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True if the model finished without error."""
        return self.error is None


def _template_text(prompt: Prompt) -> str:
    if not prompt.prompt:
        raise TeleprompterError(f"Prompt {prompt.id} has no template text")
    return prompt.prompt


def rerun_values(
    run: TestRun,
    declarations: Iterable[VariableDeclaration]
) -> dict[str, Any]:
    """
    Rebuild form values from a stored run.

    Variables the template no longer declares are dropped; new ones start
    empty.
    """
    return build_values(declarations, run.variables)


class PromptRunner:
    """
    Runs prompt templates against LLM models.

    Example:
        runner = PromptRunner(ProviderRegistry(config), RunStore())
        declarations = runner.prepare(prompt)
        results = await runner.run(prompt, values, [ModelInfo("gpt-4o", "openai")])
    """

    def __init__(self, registry: ProviderRegistry, store: RunStore) -> None:
        """
        Initialize the runner.

        Args:
            registry: Source of provider instances
            store: Run history the completed runs are saved to
        """
        self._registry = registry
        self._store = store

    @property
    def store(self) -> RunStore:
        """Run history store."""
        return self._store

    def prepare(self, prompt: Prompt) -> list[VariableDeclaration]:
        """Extract the variables a prompt's template needs."""
        return extract_variables(_template_text(prompt))

    def compile(self, prompt: Prompt, values: Mapping[str, Any]) -> str:
        """Compile a prompt's template with the given values."""
        return CompiledTemplate(_template_text(prompt)).render(values)

    async def run(
        self,
        prompt: Prompt,
        values: Mapping[str, Any],
        models: list[ModelInfo],
        on_chunk: Optional[ChunkCallback] = None,
        save: bool = True
    ) -> list[RunResult]:
        """
        Run a prompt against every given model concurrently.

        Each model that completes is saved as its own history record. A model
        that fails does not stop the others and is not saved.

        Args:
            prompt: Prompt to run
            values: Variable values
            models: Models to run against
            on_chunk: Called with each piece of streamed text
            save: Whether to record completed runs

        Returns:
            One result per model, in the order given
        """
        if not models:
            raise TeleprompterError("No model selected")

        compiled = self.compile(prompt, values)
        logger.debug(f"Compiled prompt {prompt.id} ({len(compiled)} characters)")

        results = await asyncio.gather(*(
            self._run_model(compiled, model, on_chunk) for model in models
        ))

        if save:
            for result in results:
                if result.ok:
                    result.run = self._store.save_run(
                        prompt_id=prompt.id,
                        prompt_version=prompt.version,
                        model=result.model.display_name,
                        variables=dict(values),
                        output=result.output,
                    )

        return list(results)

    async def _run_model(
        self,
        compiled: str,
        model: ModelInfo,
        on_chunk: Optional[ChunkCallback]
    ) -> RunResult:
        parts: list[str] = []
        try:
            provider = self._registry.get(model.provider)
            async for chunk in provider.stream(compiled, model.id):
                parts.append(chunk.content)
                if on_chunk:
                    on_chunk(model, chunk.content)
        except (ProviderError, httpx.HTTPError) as e:
            logger.error(f"Run against {model.display_name} failed: {e}")
            return RunResult(model=model, output="".join(parts), error=str(e))

        return RunResult(model=model, output="".join(parts))
