"""Prompt templates per task. All are ``str.format`` templates (literal braces doubled)."""

from __future__ import annotations

SCENE_ANALYSIS = """You are a professional image analyst for an AI image editing tool. Analyze this image exhaustively and detect EVERY element that could be edited.

Return a JSON object with this structure:

{{
  "elements": [
    {{
      "id": "element_1",
      "label": "specific name (e.g. 'red coffee mug', 'woman in blue dress', 'Nike logo')",
      "category": "person|animal|object|text|logo|vehicle|furniture|plant|food|building|nature|abstract|clothing|accessory|other",
      "position": "top-left, center, bottom-right, foreground-center, background-left, ...",
      "boundingBox": {{"x": 25, "y": 10, "width": 30, "height": 40}},
      "size": "tiny|small|medium|large|dominant",
      "description": "detailed description of the element",
      "colors": ["red", "dark brown"],
      "material": "wood|metal|fabric|plastic|glass|paper|skin|fur|...",
      "state": "new|worn|broken|clean|dirty|...",
      "confidence": 0.95
    }}
  ],
  "people": {{"count": 0, "descriptions": []}},
  "text": {{"items": [{{"content": "exact text", "position": "top-center", "style": "printed|handwritten|neon|..."}}]}},
  "logos": {{"items": [{{"brand": "brand name or 'unknown'", "position": "bottom-right", "size": "small"}}]}},
  "lighting": {{"type": "natural|artificial|mixed", "direction": "front|back|side|top|ambient|multiple", "quality": "soft|harsh|dramatic|flat|high-key|low-key", "colorTemperature": "warm|cool|neutral|golden|blue"}},
  "colors": {{"dominant": [], "accent": [], "palette": "warm|cool|neutral|vibrant|muted|monochrome|complementary"}},
  "style": "photograph|illustration|3d-render|painting|sketch|collage|screenshot|...",
  "background": {{"type": "solid|gradient|pattern|scene|transparent|blurred", "description": "...", "complexity": "simple|moderate|complex"}},
  "composition": {{"type": "centered|rule-of-thirds|symmetrical|diagonal|...", "focusPoint": "what draws the eye", "depth": "flat|shallow|deep"}},
  "mood": "professional|casual|dramatic|peaceful|energetic|mysterious|...",
  "quality": {{"resolution": "low|medium|high", "noise": "none|low|medium|high", "blur": "none|slight|moderate|heavy", "artifacts": []}},
  "textVisible": ["all", "readable", "text"],
  "suggestedEdits": ["Remove background clutter", "Enhance lighting"]
}}

Guidelines:
1. Detect ALL visible elements, including small, partially visible and background elements.
2. Include all readable text and any logos or brand marks.
3. Be specific with labels ("white ceramic coffee cup", not "cup").
4. Bounding boxes are percentages of the image from the top-left corner.
5. Suggest 3-5 edits based on what you see.
6. Note watermarks, timestamps, shadows and reflections.

Return ONLY valid JSON, no markdown code blocks or explanation."""

EDIT_PLANNING = """You are an AI image editing planner. Given a user instruction and a scene analysis, create an edit plan.

User instruction: "{instruction}"

Scene analysis:
{scene}

Available operations:
- remove: remove an element (target: "logo", "person", "text", ...)
- replace: replace an element (target + parameters.replacement)
- add: add a new element (parameters.element + parameters.position: center|left|right|top|bottom|top-left|top-right|bottom-left|bottom-right)
- relight: change lighting (parameters.style: backlit|soft|dramatic|golden_hour|rim_light|...; optional parameters.light_source: left|right|top|bottom|front|back)
- background: remove or replace the background (parameters.action: remove|replace, parameters.replacement when replacing)
- upscale: increase resolution (parameters.scale: 2|4)
- style: style transfer (parameters.style)
- move: move an element (target + newPosition: left|right|center|top|bottom)
- resize: scale an element (target + parameters.scale: 0.5 for half, 2.0 for double)
- detect: find elements (target: "logos"|"text"|"room_objects"|custom object name)
- describe: describe the image contents
- extract: extract an element (target)

Examples:
- "find all logos" -> detect with target "logos"
- "make the chair bigger" -> resize with target "chair", parameters.scale 1.5
- "add a plant in the corner" -> add with parameters.element "potted plant", parameters.position "bottom-right"
- "move the lamp to the left" -> move with target "lamp", newPosition "left"

Return a JSON object:
{{
  "operations": [
    {{
      "type": "operation_type",
      "target": "element label (if applicable)",
      "targetPosition": "current position (if applicable)",
      "newPosition": "new position (for move)",
      "parameters": {{}}
    }}
  ],
  "reasoning": "1-2 sentence explanation",
  "confidence": 0.0
}}

If nothing in the instruction can be done with these operations, return an empty "operations" list.
Return ONLY valid JSON, no markdown."""

VERIFICATION = """Compare these two images to verify an AI image edit.

Original instruction: "{instruction}"
Expected changes: {expected}

The first image is the original, the second is the edited result. Return JSON:
{{
  "success": true,
  "changesDetected": ["changes you see"],
  "issues": ["problems or artifacts"],
  "confidence": 0.0
}}

Return ONLY valid JSON."""

NATIVE_EDIT = """Edit this image according to these instructions: {instruction}

IMPORTANT: You MUST output the edited image. Apply the edit directly and return the modified image.
Maintain the same resolution and quality as the original image."""

NATIVE_MASKED_EDIT = """I have two images: the first is the original image, the second is a mask.
WHITE areas of the mask should be edited, BLACK areas must remain UNCHANGED.

Your task: {instruction}

Rules:
1. Only modify the white regions of the mask.
2. Keep all black-masked areas exactly as they are in the original.
3. The output must have the same dimensions as the original.
4. Blend the edited region seamlessly and keep the original lighting and style.

Output the edited image."""

NATIVE_REFERENCE_EDIT = """Edit this image according to these instructions: {instruction}

REFERENCE ELEMENTS (use these when they are mentioned in the instruction):
{references}

The first image below is the MAIN IMAGE to edit. The following images are the reference elements, in order.

IMPORTANT: You MUST output the edited image. Maintain the same resolution and quality as the original image."""

NATIVE_MASKED_REFERENCE_EDIT = """Edit this image according to these instructions: {instruction}

The first image is the MAIN IMAGE. The second image is a mask: only WHITE areas may change, BLACK areas must stay exactly as they are.

REFERENCE ELEMENTS (the remaining images, in order):
{references}

Output the edited image with the same dimensions as the main image."""

SEGMENT_BY_LABEL = """Find the "{label}" in this image and create a BLACK AND WHITE MASK where:
- the "{label}" is WHITE
- everything else is BLACK

The mask should precisely outline the boundaries of the "{label}".
Output ONLY the mask image (black and white, no color)."""

SEGMENT_AT_POINT = """I am clicking on a point in this image at coordinates ({x}, {y}).

Create a BLACK AND WHITE MASK image where:
- the object at or nearest to the clicked point is WHITE
- everything else is BLACK

Output ONLY the mask image (black and white, no color)."""

_TEMPLATES = {
    "analyze": SCENE_ANALYSIS,
    "plan": EDIT_PLANNING,
    "verify": VERIFICATION,
    "native_edit": NATIVE_EDIT,
    "native_masked_edit": NATIVE_MASKED_EDIT,
    "native_reference_edit": NATIVE_REFERENCE_EDIT,
    "native_masked_reference_edit": NATIVE_MASKED_REFERENCE_EDIT,
    "segment_label": SEGMENT_BY_LABEL,
    "segment_point": SEGMENT_AT_POINT,
}


def get_prompt_template(task: str) -> str:
    return _TEMPLATES[task]


def get_all_templates() -> dict[str, str]:
    """Return all prompt templates keyed by task name."""
    return dict(_TEMPLATES)
