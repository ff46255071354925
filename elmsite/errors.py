from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence


class BuildError(Exception):
    """Aborts the current build pass."""


class ConfigMissingError(BuildError):
    pass


class ConfigError(BuildError):
    pass


class ParseError(BuildError):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"Error in {path}:\n{message}")
        self.path = path
        self.reason = message


class TagValidationError(BuildError):
    def __init__(self, invalid: Mapping[Path, Sequence[str]]) -> None:
        self.invalid = {path: list(tags) for path, tags in invalid.items()}
        blocks = [
            f"Error in {path}:\nUndeclared tags: [{', '.join(tags)}]"
            for path, tags in self.invalid.items()
        ]
        blocks.append(
            "Each undeclared tag: it can be declared in the site-wide tag allow-list "
            '("tags" in config.json).'
        )
        super().__init__("\n".join(blocks))


class CompileError(BuildError):
    """Layout compilation failed.

    An empty message means the compiler has already reported the problem.
    """


class ToolNotFoundError(BuildError):
    def __init__(self, tool: str) -> None:
        super().__init__(f"Couldn't find `{tool}`. Is it installed and on your PATH?")
        self.tool = tool


class RenderError(BuildError):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"Error in {path}:\n{message}")
        self.path = path
        self.reason = message
