"""Shared data types used across ClipDeck."""

from dataclasses import dataclass, field
from pathlib import Path


class ClipDeckError(Exception):
    """Base class for errors raised by ClipDeck."""
    pass


@dataclass(frozen=True)
class ClipSelection:
    """A start/end trim window in seconds."""

    start: float
    end: float

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"selection start must be >= 0, got {self.start}")
        if self.end <= self.start:
            raise ValueError(
                f"selection end ({self.end}) must be greater than start ({self.start})"
            )


@dataclass(frozen=True)
class CropArea:
    """A pixel rectangle inside the source frame."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            if getattr(self, name) < 0:
                raise ValueError(f"crop {name} must be non-negative")

    @property
    def filter(self) -> str:
        return f"crop={self.width}:{self.height}:{self.x}:{self.y}"


@dataclass(frozen=True)
class ExportRequest:
    """Everything needed for one trim-and-crop export."""

    input_path: Path
    output_path: Path
    selection: ClipSelection
    crop: CropArea

    @classmethod
    def from_dict(cls, data: dict) -> "ExportRequest":
        """Build a request from the JSON payload shape used by the web API."""
        if "input_path" not in data or "output_path" not in data:
            raise ValueError("Export request must contain 'input_path' and 'output_path'")
        sel = data.get("selection") or {}
        crop = data.get("crop") or {}
        return cls(
            input_path=Path(data["input_path"]),
            output_path=Path(data["output_path"]),
            selection=ClipSelection(start=float(sel["start"]), end=float(sel["end"])),
            crop=CropArea(
                x=int(crop["x"]),
                y=int(crop["y"]),
                width=int(crop["width"]),
                height=int(crop["height"]),
            ),
        )


# ---------------------------------------------------------------------------
# Process outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessOutcome:
    """Terminal result of one supervised process."""

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class Success(ProcessOutcome):
    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class NonZeroExit(ProcessOutcome):
    code: int


@dataclass(frozen=True)
class SpawnOrRuntimeError(ProcessOutcome):
    message: str


@dataclass(frozen=True)
class UnknownTermination(ProcessOutcome):
    pass


@dataclass
class ProcessResult:
    """Outcome of a supervised process plus everything it printed.

    ``stdout``/``stderr`` hold the non-blank lines; ``raw_stdout``/``raw_stderr``
    hold the decoded output exactly as written.
    """

    outcome: ProcessOutcome
    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)
    raw_stdout: str = ""
    raw_stderr: str = ""

    @property
    def returncode(self) -> int | None:
        if isinstance(self.outcome, Success):
            return 0
        if isinstance(self.outcome, NonZeroExit):
            return self.outcome.code
        return None
