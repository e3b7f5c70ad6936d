"""Edit operation models: the loose planner form and the validated tagged union."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from pixeldirector.errors import ValidationError

OPERATION_TYPES = (
    "remove",
    "replace",
    "add",
    "relight",
    "background",
    "upscale",
    "style",
    "move",
    "resize",
    "detect",
    "describe",
    "extract",
)

# Operations that must locate their target in the image before running
TARGETED_TYPES = frozenset({"remove", "replace", "resize", "move", "extract"})

Label = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

Position = Literal[
    "center",
    "left",
    "right",
    "top",
    "bottom",
    "top-left",
    "top-right",
    "bottom-left",
    "bottom-right",
]
LightSource = Literal["left", "right", "top", "bottom", "front", "back"]

_POSITIONS = set(Position.__args__)
_LIGHT_SOURCES = set(LightSource.__args__)


def normalize_position(value: Any) -> Any:
    """Lower-case, hyphen-separated form: "Bottom Right" becomes "bottom-right"."""
    if not isinstance(value, str):
        return value
    return "-".join(value.strip().lower().replace("_", " ").replace("-", " ").split())


# ---------------------------------------------------------------------------
# As planned
# ---------------------------------------------------------------------------


class PlannedOperation(BaseModel):
    """One step exactly as the planner emitted it. Not yet validated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    type: str
    target: str | None = None
    target_position: str | None = None  # where the target currently is
    new_position: str | None = None  # for move
    parameters: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, v):
        return str(v or "").strip().lower()

    @field_validator("parameters", mode="before")
    @classmethod
    def _parameters_dict(cls, v):
        return v if isinstance(v, dict) else {}


class EditPlan(BaseModel):
    """Planner output: ordered operations, run strictly in sequence."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    operations: list[PlannedOperation] = Field(default_factory=list)
    reasoning: str = ""  # diagnostic only
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        try:
            return min(1.0, max(0.0, float(v)))
        except (TypeError, ValueError):
            return 0.0

    @property
    def is_empty(self) -> bool:
        return not self.operations


# ---------------------------------------------------------------------------
# Validated variants
# ---------------------------------------------------------------------------


class _Op(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def label(self) -> str | None:
        """The image element this operation must locate first, if any."""
        return None


class _TargetedOp(_Op):
    target: Label
    target_position: str | None = None

    @property
    def label(self) -> str:
        return self.target


class RemoveOp(_TargetedOp):
    type: Literal["remove"] = "remove"


class ReplaceOp(_TargetedOp):
    type: Literal["replace"] = "replace"
    replacement: Label


class AddOp(_Op):
    type: Literal["add"] = "add"
    element: Label
    position: Position = "center"

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, v):
        v = normalize_position(v) or "center"
        return v if v in _POSITIONS else "center"


class RelightOp(_Op):
    type: Literal["relight"] = "relight"
    style: str = "soft natural lighting"
    light_source: LightSource = "front"
    strength: float = Field(default=2.0, gt=0)

    @field_validator("style", mode="before")
    @classmethod
    def _style(cls, v):
        return str(v).strip() if v and str(v).strip() else "soft natural lighting"

    @field_validator("light_source", mode="before")
    @classmethod
    def _light_source(cls, v):
        v = normalize_position(v) or "front"
        return v if v in _LIGHT_SOURCES else "front"


class BackgroundOp(_Op):
    type: Literal["background"] = "background"
    action: Literal["remove", "replace"] = "remove"
    replacement: str | None = None

    @model_validator(mode="after")
    def _replacement_required(self):
        if self.action == "replace" and not (self.replacement or "").strip():
            raise ValueError("background replace requires a replacement description")
        return self


class UpscaleOp(_Op):
    type: Literal["upscale"] = "upscale"
    scale: Literal[2, 4] = 4

    @field_validator("scale", mode="before")
    @classmethod
    def _scale(cls, v):
        if v in (None, ""):
            return 4
        try:
            return int(float(v))
        except (TypeError, ValueError):
            return v


class StyleOp(_Op):
    type: Literal["style"] = "style"
    style: str | None = None
    instruction: str | None = None


class MoveOp(_TargetedOp):
    type: Literal["move"] = "move"
    new_position: Position

    @field_validator("new_position", mode="before")
    @classmethod
    def _position(cls, v):
        return normalize_position(v)


class ResizeOp(_TargetedOp):
    type: Literal["resize"] = "resize"
    scale: float = Field(default=1.5, gt=0)

    @field_validator("scale", mode="before")
    @classmethod
    def _scale(cls, v):
        return 1.5 if v in (None, "", 0) else v


class DetectOp(_Op):
    type: Literal["detect"] = "detect"
    target: str = "objects"

    @field_validator("target", mode="before")
    @classmethod
    def _target(cls, v):
        return str(v).strip() if v and str(v).strip() else "objects"


class DescribeOp(_Op):
    type: Literal["describe"] = "describe"
    question: str | None = None


class ExtractOp(_TargetedOp):
    type: Literal["extract"] = "extract"


EditOperation = Annotated[
    Union[
        RemoveOp,
        ReplaceOp,
        AddOp,
        RelightOp,
        BackgroundOp,
        UpscaleOp,
        StyleOp,
        MoveOp,
        ResizeOp,
        DetectOp,
        DescribeOp,
        ExtractOp,
    ],
    Field(discriminator="type"),
]

_operation_adapter: TypeAdapter[EditOperation] = TypeAdapter(EditOperation)


def _flatten(planned: PlannedOperation) -> dict[str, Any]:
    """Merge top-level fields and the parameters bag into one variant payload."""
    data: dict[str, Any] = dict(planned.parameters)
    data["type"] = planned.type
    for key, value in (
        ("target", planned.target),
        ("target_position", planned.target_position),
        ("new_position", planned.new_position),
    ):
        if value is not None:
            data[key] = value
    if "newPosition" in data:
        data.setdefault("new_position", data.pop("newPosition"))
    if "lightSource" in data:
        data.setdefault("light_source", data.pop("lightSource"))
    if planned.type == "add" and "position" not in data and planned.new_position:
        data["position"] = planned.new_position
    if planned.type == "move" and "new_position" not in data and "position" in data:
        data["new_position"] = data["position"]
    return data


def to_operation(planned: PlannedOperation | dict[str, Any]) -> EditOperation:
    """Validate a planned step into its typed variant.

    Raises our ``ValidationError`` for unknown types and for missing or
    empty required fields, so nothing malformed reaches a remote model.
    """
    if isinstance(planned, dict):
        try:
            planned = PlannedOperation.model_validate(planned)
        except PydanticValidationError as e:
            raise ValidationError(f"malformed operation: {_summarize(e)}") from e
    if planned.type not in OPERATION_TYPES:
        raise ValidationError(f"unknown operation type {planned.type!r}")
    try:
        return _operation_adapter.validate_python(_flatten(planned))
    except PydanticValidationError as e:
        raise ValidationError(f"invalid {planned.type} operation: {_summarize(e)}") from e


def _summarize(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"][1:] or err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def describe_operation(op: PlannedOperation) -> str:
    p = op.parameters
    t = op.type
    if t == "remove":
        return f'Remove "{op.target}"'
    elif t == "replace":
        return f'Replace "{op.target}" with "{p.get("replacement")}"'
    elif t == "add":
        return f'Add "{p.get("element")}" at {p.get("position") or op.new_position or "center"}'
    elif t == "move":
        return f'Move "{op.target}" from {op.target_position or "its position"} to {op.new_position}'
    elif t == "relight":
        return f"Apply {p.get('style') or 'soft natural'} lighting"
    elif t == "background":
        return "Remove background" if p.get("action", "remove") == "remove" else "Replace background"
    elif t == "upscale":
        return f"Upscale {p.get('scale') or 4}x"
    elif t == "resize":
        return f'Resize "{op.target}" by {p.get("scale") or 1.5}x'
    elif t == "detect":
        return f'Detect "{op.target or "objects"}"'
    elif t == "describe":
        return "Describe image contents"
    elif t == "extract":
        return f'Extract "{op.target}"'
    elif t == "style":
        return f"Apply style: {p.get('style') or 'unspecified'}"
    return f"{t} {op.target or ''}".strip()


def describe_plan(plan: EditPlan) -> str:
    """Numbered, human-readable summary of a plan."""
    if plan.is_empty:
        return "No edits planned."
    steps = [f"{i}. {describe_operation(op)}" for i, op in enumerate(plan.operations, start=1)]
    lines = ["Edit plan:", *steps]
    if plan.reasoning:
        lines.append(f"Reasoning: {plan.reasoning}")
    lines.append(f"Confidence: {round(plan.confidence * 100)}%")
    return "\n".join(lines)
