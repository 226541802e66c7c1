"""
Records returned by the prompt service.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Prompt:
    """A prompt at its current version."""
    id: str
    namespace: str
    version: int
    prompt: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'Prompt':
        """Create a Prompt from a service response object."""
        return cls(
            id=str(data["id"]),
            namespace=str(data.get("namespace") or ""),
            version=int(data.get("version") or 0),
            prompt=data.get("prompt"),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        data = {
            "id": self.id,
            "namespace": self.namespace,
            "version": self.version,
        }
        if self.prompt is not None:
            data["prompt"] = self.prompt
        if self.created_at is not None:
            data["created_at"] = self.created_at
        return data

    def to_export(self) -> dict:
        """The fields written by export and read back by import."""
        return {
            "id": self.id,
            "namespace": self.namespace,
            "prompt": self.prompt or "",
        }


PromptVersion = Prompt


@dataclass
class ImportReport:
    """Outcome of importing prompts from files."""
    imported: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if nothing was skipped or failed."""
        return not self.skipped and not self.failed
