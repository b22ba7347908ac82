from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class StreamChunk:
    """Normalized unit exchanged between parsers, producers and the task manager."""

    text: str
    done: bool = False
    event: Optional[str] = None
    raw: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"text": self.text}
        if self.event:
            data["event"] = self.event
        if self.done:
            data["done"] = True
        if self.raw is not None:
            data["raw"] = self.raw
        return data
