"""Tests for edit operation validation and plan descriptions."""

from __future__ import annotations

import pytest

from pixeldirector.errors import ValidationError
from pixeldirector.models.edit_ops import (
    AddOp,
    BackgroundOp,
    DescribeOp,
    DetectOp,
    EditPlan,
    MoveOp,
    PlannedOperation,
    RelightOp,
    RemoveOp,
    ReplaceOp,
    ResizeOp,
    UpscaleOp,
    describe_plan,
    normalize_position,
    to_operation,
)


# ---------------------------------------------------------------------------
# PlannedOperation / EditPlan
# ---------------------------------------------------------------------------


def test_planned_operation_accepts_camel_case():
    op = PlannedOperation.model_validate(
        {"type": "Move", "target": "cup", "targetPosition": "left", "newPosition": "right"}
    )
    assert op.type == "move"
    assert op.target_position == "left"
    assert op.new_position == "right"


def test_non_dict_parameters_become_empty():
    assert PlannedOperation.model_validate({"type": "upscale", "parameters": "2x"}).parameters == {}


def test_plan_confidence_clamped():
    assert EditPlan(confidence=3).confidence == 1.0
    assert EditPlan(confidence="n/a").confidence == 0.0


def test_plan_empty():
    assert EditPlan().is_empty
    assert not EditPlan(operations=[PlannedOperation(type="upscale")]).is_empty


def test_normalize_position():
    assert normalize_position("Bottom Right") == "bottom-right"
    assert normalize_position("top_left") == "top-left"
    assert normalize_position(None) is None


# ---------------------------------------------------------------------------
# to_operation
# ---------------------------------------------------------------------------


class TestToOperation:
    def test_remove(self):
        op = to_operation({"type": "remove", "target": " logo "})
        assert isinstance(op, RemoveOp)
        assert op.target == "logo"
        assert op.label == "logo"

    @pytest.mark.parametrize("target", [None, "", "   "])
    def test_remove_needs_target(self, target):
        with pytest.raises(ValidationError):
            to_operation({"type": "remove", "target": target})

    def test_replace_needs_replacement(self):
        with pytest.raises(ValidationError, match="replacement"):
            to_operation({"type": "replace", "target": "mug"})

    def test_replace(self):
        op = to_operation({"type": "replace", "target": "mug", "parameters": {"replacement": "vase"}})
        assert isinstance(op, ReplaceOp)
        assert op.replacement == "vase"

    def test_add_position_defaults_to_center(self):
        op = to_operation({"type": "add", "parameters": {"element": "cat", "position": "somewhere"}})
        assert isinstance(op, AddOp)
        assert op.position == "center"
        assert op.label is None

    def test_add_position_normalized(self):
        op = to_operation({"type": "add", "parameters": {"element": "cat", "position": "Top Right"}})
        assert op.position == "top-right"

    def test_add_needs_element(self):
        with pytest.raises(ValidationError):
            to_operation({"type": "add", "parameters": {"position": "left"}})

    def test_relight_defaults(self):
        op = to_operation({"type": "relight"})
        assert isinstance(op, RelightOp)
        assert op.style == "soft natural lighting"
        assert op.light_source == "front"
        assert op.strength == 2.0

    def test_relight_unknown_light_source(self):
        op = to_operation({"type": "relight", "parameters": {"light_source": "moon"}})
        assert op.light_source == "front"

    def test_background_replace_needs_description(self):
        with pytest.raises(ValidationError):
            to_operation({"type": "background", "parameters": {"action": "replace"}})

    def test_background_default_is_remove(self):
        op = to_operation({"type": "background"})
        assert isinstance(op, BackgroundOp)
        assert op.action == "remove"

    def test_upscale_scale(self):
        assert to_operation({"type": "upscale"}).scale == 4
        assert to_operation({"type": "upscale", "parameters": {"scale": "2"}}).scale == 2
        assert isinstance(to_operation({"type": "upscale", "parameters": {"scale": 4.0}}), UpscaleOp)

    def test_upscale_rejects_other_scales(self):
        with pytest.raises(ValidationError):
            to_operation({"type": "upscale", "parameters": {"scale": 3}})

    def test_move_from_parameters(self):
        op = to_operation({"type": "move", "target": "cup", "parameters": {"position": "Left"}})
        assert isinstance(op, MoveOp)
        assert op.new_position == "left"

    def test_move_needs_valid_position(self):
        with pytest.raises(ValidationError):
            to_operation({"type": "move", "target": "cup", "newPosition": "upstairs"})

    def test_resize_scale(self):
        assert to_operation({"type": "resize", "target": "cup"}).scale == 1.5
        with pytest.raises(ValidationError):
            to_operation({"type": "resize", "target": "cup", "parameters": {"scale": -1}})
        assert isinstance(to_operation({"type": "resize", "target": "cup"}), ResizeOp)

    def test_detect_default_target(self):
        op = to_operation({"type": "detect"})
        assert isinstance(op, DetectOp)
        assert op.target == "objects"

    def test_describe(self):
        op = to_operation({"type": "describe", "parameters": {"question": "how many?"}})
        assert isinstance(op, DescribeOp)
        assert op.question == "how many?"

    def test_top_level_fields_override_parameters(self):
        op = to_operation({"type": "remove", "target": "logo", "parameters": {"target": "text"}})
        assert op.target == "logo"

    def test_unknown_type(self):
        with pytest.raises(ValidationError, match="unknown operation type"):
            to_operation({"type": "teleport"})

    def test_missing_type(self):
        with pytest.raises(ValidationError):
            to_operation({"target": "logo"})


# ---------------------------------------------------------------------------
# describe_plan
# ---------------------------------------------------------------------------


def test_describe_empty_plan():
    assert describe_plan(EditPlan()) == "No edits planned."


def test_describe_plan():
    plan = EditPlan.model_validate(
        {
            "operations": [
                {"type": "remove", "target": "logo"},
                {"type": "add", "parameters": {"element": "plant", "position": "left"}},
                {"type": "upscale", "parameters": {"scale": 2}},
            ],
            "reasoning": "Clean up then sharpen.",
            "confidence": 0.85,
        }
    )
    assert describe_plan(plan) == "\n".join(
        [
            "Edit plan:",
            '1. Remove "logo"',
            '2. Add "plant" at left',
            "3. Upscale 2x",
            "Reasoning: Clean up then sharpen.",
            "Confidence: 85%",
        ]
    )
