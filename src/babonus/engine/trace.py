from __future__ import annotations
from typing import List

class TraceSession:
    """Collects human-readable lines describing one or more filter passes."""

    def __init__(self, tag: str = "Filter") -> None:
        self.tag = tag
        self.lines: List[str] = []

    def add(self, line: str) -> None:
        self.lines.append(f"[{self.tag}] {line}")

    def dump(self) -> list[str]:
        return list(self.lines)

    def __len__(self) -> int:
        return len(self.lines)
