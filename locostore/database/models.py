"""
Record types persisted by the repositories.

Documents are stored with the camelCase keys used by the web clients, so
each record type maps itself to and from that document form.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional


class FunctionMode(IntEnum):
    """How a decoder function behaves when triggered."""
    NOT_SET = 0
    TRIGGER = 1
    LATCHED = 2
    MOMENTARY = 3
    MACRO = 4


@dataclass
class FunctionConfig:
    """
    Configuration of a single decoder function button.

    Attributes:
        name: Label shown on the control.
        mode: Trigger behaviour.
        exec: Function number or macro to execute.
    """
    name: str
    mode: FunctionMode = FunctionMode.NOT_SET
    exec: str = ""

    def to_document(self) -> dict:
        return {"name": self.name, "mode": int(self.mode), "exec": self.exec}

    @classmethod
    def from_document(cls, data: dict) -> "FunctionConfig":
        return cls(
            name=data.get("name", ""),
            mode=FunctionMode(data.get("mode", FunctionMode.NOT_SET)),
            exec=data.get("exec", "")
        )


@dataclass
class Loco:
    """
    A locomotive known to the command station.

    Attributes:
        name: Display name.
        address: DCC address of the decoder.
        discrete: Whether the decoder uses discrete speed steps.
        speeds: Configured discrete speed steps.
        max_speed: Upper limit for analogue speed control.
        functions: Function button configuration.
        cvs: Known configuration variable values keyed by CV number.
        id: Store-assigned identifier, None until inserted.
    """
    name: str
    address: int
    discrete: bool = False
    speeds: Optional[List[int]] = None
    max_speed: Optional[int] = None
    functions: Optional[List[FunctionConfig]] = None
    cvs: Optional[Dict[str, int]] = None
    id: Optional[int] = None

    def to_document(self) -> dict:
        """Serialize to the JSON document form, omitting unset optional fields."""
        document = {
            "name": self.name,
            "address": self.address,
            "discrete": self.discrete,
        }
        if self.id is not None:
            document["id"] = self.id
        if self.speeds is not None:
            document["speeds"] = list(self.speeds)
        if self.max_speed is not None:
            document["maxSpeed"] = self.max_speed
        if self.functions is not None:
            document["functions"] = [f.to_document() for f in self.functions]
        if self.cvs is not None:
            document["cvs"] = dict(self.cvs)
        return document

    @classmethod
    def from_document(cls, data: dict) -> "Loco":
        functions = data.get("functions")
        return cls(
            name=data["name"],
            address=data["address"],
            discrete=data.get("discrete", False),
            speeds=data.get("speeds"),
            max_speed=data.get("maxSpeed"),
            functions=[FunctionConfig.from_document(f) for f in functions] if functions is not None else None,
            cvs=data.get("cvs"),
            id=data.get("id")
        )


@dataclass(frozen=True)
class RunResult:
    """Outcome of a mutating statement."""
    changes: int
    last_row_id: Optional[int] = None
