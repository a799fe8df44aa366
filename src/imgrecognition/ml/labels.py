"""Label vocabulary: classifier output index -> class name."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from imgrecognition.errors import ModelLoadError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabelTable:
    """Ordered, index-addressed class names. File order is output order."""

    names: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.names)

    def __getitem__(self, index: int) -> str:
        return self.names[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    @classmethod
    def from_file(cls, path: str | Path) -> LabelTable:
        """Load a newline-delimited vocabulary.

        Raises:
            ModelLoadError: If the file cannot be read or holds no labels.
        """
        path = Path(path)
        try:
            text = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ModelLoadError(f"cannot read labels file {path}: {exc}") from exc

        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()
        names = tuple(line.removesuffix("\r") for line in lines)
        if not names:
            raise ModelLoadError(f"labels file {path} is empty")

        logger.info("Loaded %d labels from %s", len(names), path)
        return cls(names=names)
