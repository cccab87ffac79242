from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, Optional

from .models import Actor

PassKind = Literal["misc", "throw", "item"]

@dataclass(frozen=True)
class FilterContext:
    """
    Per-pass extras handed to every predicate.
    `target` is captured once when the pass starts and never re-read.
    """
    kind: PassKind = "item"
    throw_type: Optional[str] = None
    is_conc_save: bool = False
    target: Optional[Actor] = None

    def describe(self) -> str:
        bits = [self.kind]
        if self.throw_type:
            bits.append(f"throw={self.throw_type}")
        if self.is_conc_save:
            bits.append("concentration")
        bits.append(f"target={self.target.name or self.target.id}" if self.target else "no target")
        return ", ".join(bits)
