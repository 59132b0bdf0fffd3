"""Working copy of a proposal's content between saves."""

from dataclasses import dataclass
from typing import Optional

from ..ai.models import TranslationResult


@dataclass
class ContentBuffer:
    """Ephemeral, never-persisted editing state.

    ``persisted_content`` and ``last_known_persisted_version`` describe the
    last content this session read from or wrote to storage; ``dirty`` is true
    whenever ``content`` may differ from it.
    """

    content: str
    persisted_content: str
    last_known_persisted_version: int
    dirty: bool = False
    translation: Optional[TranslationResult] = None

    @classmethod
    def from_persisted(cls, content: str, version: int) -> "ContentBuffer":
        return cls(content=content, persisted_content=content, last_known_persisted_version=version)

    def replace(self, content: str) -> None:
        self.content = content
        self.dirty = True

    def mark_persisted(self, content: str, version: int) -> None:
        """Record a successful save of ``content`` at ``version``.

        The buffer stays dirty if it was edited after ``content`` was captured.
        """
        self.persisted_content = content
        self.last_known_persisted_version = version
        self.dirty = self.content != content

    def revert(self) -> None:
        self.content = self.persisted_content
        self.dirty = False
        self.translation = None
