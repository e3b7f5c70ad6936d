"""Replicate prediction API client and the transform operations built on it."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
from PIL import Image

from pixeldirector.config import settings
from pixeldirector.engine.images import encode_png, load_image_bytes, load_pil, to_data_uri, to_remote_input
from pixeldirector.engine.regions import Box
from pixeldirector.engine.retry import SUBMISSION_POLICY, RetryPolicy, with_retry
from pixeldirector.engine.segmentation import Detection, DetectionResult, MaskCandidate
from pixeldirector.errors import (
    ConfigurationError,
    FatalServiceError,
    JobCanceledError,
    OperationTimeoutError,
    RateLimitedError,
    TransientServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

MODELS = {
    # Detection & segmentation
    "grounded_sam": "schananas/grounded_sam:ee871c19efb1941f55f66a3d7d960428c8a5afcb77449547fe8e5a3ab9ebc21c",
    "grounding_dino": "adirik/grounding-dino:efd10a8ddc57ea28773327e881ce95e20cc1d734c589f7dd01d2036921ed78aa",
    "sam": "meta/sam-2:fe97b453a6455861e3bac769b441ca1f1086110da7466dbb65cf1eecfd60dc83",
    # Captioning
    "blip2": "andreasjansson/blip-2:f677695e5e89f8b236e52ecd1d3f01beb44c34606419bcc19345e046d8f786f9",
    # Inpainting & removal
    "lama": "allenhooo/lama:cdac78a1bec5b23c07fd29692fb70baa513ea403a39e643c48ec5edadb15fe72",
    "rembg": "cjwbw/rembg:fb8af171cfa1616ddcf1242c093f9c46bcada5ad4cf6f2fbe8b81b330ec5c003",
    "sdxl_inpaint": "stability-ai/sdxl:7762fd07cf82c948538e41f63f77d685e02b063e37e496e96eefd46c929f9bdc",
    # Generation
    "flux_schnell": "black-forest-labs/flux-schnell",
    "flux_fill": "black-forest-labs/flux-fill-pro",
    # Relighting & upscaling
    "ic_light": "lllyasviel/ic-light-v2:8a89b0ab59a050f5bbc80a9b7e33f7464e82fc6be2c70987edf576039e57f908",
    "real_esrgan": "nightmareai/real-esrgan:f121d640bd286e1fdc67f9799164c1d5be36ff74576ee11c803ae5b665dd46aa",
}

TERMINAL_STATUSES = frozenset({"succeeded", "failed", "canceled"})

NEGATIVE_PROMPT = "ugly, blurry, low quality, distorted"
DEFAULT_DESCRIBE_QUESTION = "What is in this image? Describe all objects, logos, and text you see."

LOGO_QUERY = "logo . brand . emblem . symbol . icon"
TEXT_QUERY = "text . writing . letters . words . sign"
ROOM_OBJECTS = [
    "chair", "table", "sofa", "couch", "bed", "desk", "lamp", "tv", "television",
    "window", "door", "plant", "rug", "carpet", "painting", "picture frame",
    "bookshelf", "cabinet", "dresser", "mirror", "clock", "vase", "curtain",
    "pillow", "blanket", "computer", "monitor", "keyboard", "phone",
]
ROOM_QUERY = " . ".join(ROOM_OBJECTS)


@dataclass(frozen=True)
class Prediction:
    id: str
    status: str
    output: Any = None
    error: str | None = None
    logs: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Prediction:
        if not isinstance(data, dict) or "id" not in data:
            raise FatalServiceError(f"unexpected prediction payload: {str(data)[:200]}")
        return cls(
            id=str(data["id"]),
            status=str(data.get("status") or "starting"),
            output=data.get("output"),
            error=data.get("error"),
            logs=data.get("logs"),
        )

    @property
    def done(self) -> bool:
        return self.status in TERMINAL_STATUSES


def prediction_request(base_url: str, model_id: str, inputs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Versioned ids ("owner/name:hash") post to /predictions, bare ids to the model endpoint."""
    name, _, version = model_id.partition(":")
    if version:
        return f"{base_url}/predictions", {"version": version, "input": inputs}
    owner, _, model = name.partition("/")
    return f"{base_url}/models/{owner}/{model}/predictions", {"input": inputs}


def _retry_after(resp: httpx.Response) -> float | None:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("retry_after") is not None:
        try:
            return float(body["retry_after"])
        except (TypeError, ValueError):
            pass
    header = resp.headers.get("retry-after")
    if header:
        try:
            return float(header)
        except ValueError:
            return None
    return None


def raise_for_status(resp: httpx.Response, what: str) -> None:
    """Translate an HTTP failure into the error taxonomy."""
    if resp.is_success:
        return
    detail = resp.text[:300]
    if resp.status_code == 429:
        raise RateLimitedError(f"{what}: rate limited", retry_after=_retry_after(resp))
    if resp.status_code >= 500:
        raise TransientServiceError(f"{what}: HTTP {resp.status_code} - {detail}")
    if resp.status_code in (401, 403):
        raise ConfigurationError(f"{what}: HTTP {resp.status_code}, check REPLICATE_API_TOKEN")
    raise FatalServiceError(f"{what}: HTTP {resp.status_code} - {detail}")


def first_output(output: Any, what: str) -> str:
    """Most models return a URL or a list of URLs; take the first."""
    if isinstance(output, list):
        output = output[0] if output else None
    if isinstance(output, str) and output:
        return output
    raise FatalServiceError(f"{what}: model returned no image ({type(output).__name__})")


class ReplicateClient:
    """Async client for Replicate's submit-then-poll prediction API.

    Submission retries rate limits with ``submit_policy``. Polling runs at a
    fixed interval until the job is terminal or ``poll_timeout`` elapses.
    ``sleep`` and ``clock`` are injectable so waiting can be simulated.
    """

    def __init__(
        self,
        api_token: str | None = None,
        *,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        poll_interval: float | None = None,
        poll_timeout: float | None = None,
        submit_policy: RetryPolicy = SUBMISSION_POLICY,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        token = api_token if api_token is not None else settings.replicate_api_token
        if not token:
            raise ConfigurationError("REPLICATE_API_TOKEN is not set")
        self._token = token
        self.base_url = (base_url or settings.replicate_base_url).rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=60.0, follow_redirects=True)
        self.poll_interval = settings.poll_interval_s if poll_interval is None else poll_interval
        self.poll_timeout = settings.poll_timeout_s if poll_timeout is None else poll_timeout
        self.submit_policy = submit_policy
        self._sleep = sleep
        self._clock = clock

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ReplicateClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # -- Job API --------------------------------------------------------

    async def _send(self, method: str, url: str, what: str, **kwargs) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            resp = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientServiceError(f"{what}: request timed out") from e
        except httpx.TransportError as e:
            raise TransientServiceError(f"{what}: {e}") from e
        raise_for_status(resp, what)
        try:
            return resp.json()
        except ValueError as e:
            raise FatalServiceError(f"{what}: response is not JSON") from e

    async def create_prediction(self, model_id: str, inputs: dict[str, Any]) -> Prediction:
        url, body = prediction_request(self.base_url, model_id, inputs)
        name = model_id.split(":")[0]

        async def submit() -> Prediction:
            return Prediction.from_json(await self._send("POST", url, f"submit {name}", json=body))

        prediction = await with_retry(
            submit, name=f"submit {name}", policy=self.submit_policy, sleep=self._sleep
        )
        logger.debug("Prediction %s submitted for %s (%s)", prediction.id, name, prediction.status)
        return prediction

    async def get_prediction(self, prediction_id: str) -> Prediction:
        data = await self._send(
            "GET", f"{self.base_url}/predictions/{prediction_id}", f"poll {prediction_id}"
        )
        return Prediction.from_json(data)

    async def wait_for_prediction(
        self, prediction: Prediction | str, timeout: float | None = None
    ) -> Any:
        """Poll until the job finishes; returns its output."""
        timeout = self.poll_timeout if timeout is None else timeout
        current = prediction if isinstance(prediction, Prediction) else None
        prediction_id = prediction.id if isinstance(prediction, Prediction) else prediction
        start = self._clock()
        polls = 0

        while True:
            if current is not None and current.done:
                break
            if self._clock() - start >= timeout:
                raise OperationTimeoutError(
                    f"prediction {prediction_id} not finished after {timeout:.0f}s"
                )
            if current is not None:
                await self._sleep(self.poll_interval)
            try:
                current = await self.get_prediction(prediction_id)
            except RateLimitedError:
                logger.debug("Prediction %s: status read rate limited, waiting", prediction_id)
                current = Prediction(id=prediction_id, status="processing")
            polls += 1

        if current.status == "failed":
            raise FatalServiceError(f"Prediction failed: {current.error}")
        if current.status == "canceled":
            raise JobCanceledError(f"prediction {prediction_id} was canceled")
        logger.debug("Prediction %s succeeded after %d poll(s)", prediction_id, polls)
        return current.output

    async def run(self, model_id: str, inputs: dict[str, Any]) -> Any:
        """Submit a prediction and wait for its output."""
        t0 = time.perf_counter()
        prediction = await self.create_prediction(model_id, inputs)
        output = await self.wait_for_prediction(prediction)
        logger.info("%s finished in %.1fs", model_id.split(":")[0], time.perf_counter() - t0)
        return output

    async def _image_input(self, image: str) -> str:
        return await to_remote_input(image, self._http)

    # -- Detection & segmentation ----------------------------------------

    async def detect_objects(self, image: str, prompt: str) -> DetectionResult:
        """Grounding DINO boxes for a text query ("a . b . c" for several)."""
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError(f"object detection needs a non-empty query, got {prompt!r}")
        # The detector is unreliable with remote URLs; always send inline data
        data, mime = await load_image_bytes(image, self._http)
        output = await self.run(
            MODELS["grounding_dino"],
            {
                "image": to_data_uri(data, mime),
                "query": prompt.strip(),
                "box_threshold": 0.3,
                "text_threshold": 0.25,
                "show_visualisation": False,
            },
        )
        return DetectionResult(query=prompt.strip(), detections=parse_detections(output))

    async def detect_and_segment(self, image: str, label: str) -> list[MaskCandidate]:
        """Combined detect+segment. An empty list means the label was not found."""
        if not isinstance(label, str) or not label.strip():
            raise ValidationError(f"segmentation needs a non-empty label, got {label!r}")
        output = await self.run(
            MODELS["grounded_sam"],
            {
                "image": await self._image_input(image),
                "mask_prompt": label.strip(),
                "negative_mask_prompt": "",
                "adjustment_factor": 0,
            },
        )
        # First entry is the positive mask
        if isinstance(output, list):
            output = output[0] if output else None
        if not isinstance(output, str) or not output:
            return []
        return [MaskCandidate(mask=output)]

    async def generate_mask(self, image: str, box: Box) -> str:
        """SAM mask for a box, prompted with the box and its center point."""
        cx, cy = box.center
        output = await self.run(
            MODELS["sam"],
            {
                "image": await self._image_input(image),
                "point_coords": f"{cx},{cy}",
                "point_labels": "1",
                "box": box.as_prompt(),
            },
        )
        if isinstance(output, dict):
            output = output.get("combined_mask")
        return first_output(output, "generate mask")

    async def detect_logos(self, image: str) -> DetectionResult:
        return await self.detect_objects(image, LOGO_QUERY)

    async def detect_text(self, image: str) -> DetectionResult:
        return await self.detect_objects(image, TEXT_QUERY)

    async def detect_room_objects(self, image: str) -> DetectionResult:
        return await self.detect_objects(image, ROOM_QUERY)

    async def detect_target(self, image: str, target: str) -> DetectionResult:
        """Detect a preset vocabulary ("logos", "text", "room objects") or a custom label."""
        preset = "_".join(target.strip().lower().split())
        if preset == "logos":
            return await self.detect_logos(image)
        if preset == "text":
            return await self.detect_text(image)
        if preset == "room_objects":
            return await self.detect_room_objects(image)
        return await self.detect_objects(image, target)

    async def describe_image(self, image: str, question: str | None = None) -> str:
        output = await self.run(
            MODELS["blip2"],
            {
                "image": await self._image_input(image),
                "question": question or DEFAULT_DESCRIBE_QUESTION,
            },
        )
        if isinstance(output, list):
            return " ".join(str(o) for o in output)
        return str(output or "")

    # -- Image transforms -------------------------------------------------

    async def remove_object(self, image: str, mask: str) -> str:
        """Inpaint the masked region away (LaMa)."""
        output = await self.run(
            MODELS["lama"],
            {"image": await self._image_input(image), "mask": await self._image_input(mask)},
        )
        return first_output(output, "remove object")

    async def replace_object(self, image: str, mask: str, replacement: str) -> str:
        output = await self.run(
            MODELS["sdxl_inpaint"],
            {
                "image": await self._image_input(image),
                "mask": await self._image_input(mask),
                "prompt": replacement,
                "negative_prompt": NEGATIVE_PROMPT,
                "strength": 0.85,
            },
        )
        return first_output(output, "replace object")

    async def regenerate_object(self, image: str, label: str, *, strength: float = 0.85) -> str:
        """Paint ``label`` back into an image it was removed from."""
        output = await self.run(
            MODELS["sdxl_inpaint"],
            {
                "image": await self._image_input(image),
                "prompt": f"{label}, same style as surroundings, photorealistic",
                "negative_prompt": f"{NEGATIVE_PROMPT}, wrong size",
                "strength": strength,
            },
        )
        return first_output(output, "regenerate object")

    async def insert_object(self, image: str, element: str, region: Box) -> str:
        output = await self.run(
            MODELS["flux_fill"],
            {
                "image": await self._image_input(image),
                "prompt": element,
                "mask": region.as_prompt(),
            },
        )
        return first_output(output, "insert object")

    async def relight(
        self, image: str, style: str, *, light_source: str = "front", strength: float = 2.0
    ) -> str:
        output = await self.run(
            MODELS["ic_light"],
            {
                "image": await self._image_input(image),
                "prompt": style,
                "light_source": light_source,
                "cfg_scale": strength,
            },
        )
        return first_output(output, "relight")

    async def upscale(self, image: str, scale: int = 4) -> str:
        output = await self.run(
            MODELS["real_esrgan"], {"image": await self._image_input(image), "scale": scale}
        )
        return first_output(output, "upscale")

    async def remove_background(self, image: str) -> str:
        output = await self.run(MODELS["rembg"], {"image": await self._image_input(image)})
        return first_output(output, "remove background")

    async def replace_background(self, image: str, description: str) -> str:
        """Cut the subject out and lay it over a freshly generated backdrop."""
        cutout = await load_pil(await self.remove_background(image), self._http)
        width, height = cutout.size
        backdrops = await self.generate_image(
            description, width=_gen_size(width), height=_gen_size(height)
        )
        if not backdrops:
            raise FatalServiceError("replace background: no backdrop generated")
        backdrop = await load_pil(backdrops[0], self._http)
        backdrop = backdrop.convert("RGBA").resize(cutout.size, Image.Resampling.LANCZOS)
        merged = Image.alpha_composite(backdrop, cutout.convert("RGBA"))
        return to_data_uri(encode_png(merged), "image/png")

    async def generate_image(
        self, prompt: str, *, width: int = 1024, height: int = 1024, num_outputs: int = 1
    ) -> list[str]:
        output = await self.run(
            MODELS["flux_schnell"],
            {"prompt": prompt, "width": width, "height": height, "num_outputs": num_outputs},
        )
        if isinstance(output, str):
            return [output]
        return [str(o) for o in output or []]

    async def generate_object(self, description: str, *, width: int = 512, height: int = 512) -> str:
        """Generate an isolated object with a transparent background."""
        results = await self.generate_image(
            f"{description}, isolated on white background, product photography, centered",
            width=width,
            height=height,
        )
        if not results:
            raise FatalServiceError("generate object: no image generated")
        return await self.remove_background(results[0])


def _gen_size(n: int) -> int:
    """Generation sizes must be multiples of 64, capped at 1440."""
    return max(256, min(1440, int(round(n / 64)) * 64))


def parse_detections(output: Any) -> list[Detection]:
    """Accepts both ``{"detections": [...]}`` and the older parallel-array form."""
    if not isinstance(output, dict):
        logger.warning("Unknown detector output type: %s", type(output).__name__)
        return []

    if isinstance(output.get("detections"), list):
        found = []
        for d in output["detections"]:
            if not isinstance(d, dict) or not d.get("bbox"):
                continue
            found.append(
                Detection(
                    label=str(d.get("label") or ""),
                    bbox=Box.from_list(d["bbox"]),
                    confidence=float(d.get("confidence") or 0.0),
                )
            )
        return found

    if isinstance(output.get("boxes"), list):
        labels = output.get("labels") or []
        scores = output.get("scores") or []
        return [
            Detection(
                label=str(labels[i]) if i < len(labels) else "",
                bbox=Box.from_list(box),
                confidence=float(scores[i]) if i < len(scores) else 0.0,
            )
            for i, box in enumerate(output["boxes"])
        ]

    logger.warning("Unknown detector output format: %s", sorted(output))
    return []
