"""
Free image provider.

Builds a direct image URL on a public, keyless endpoint. There is no network
call here: the URL itself is the result and renders on first fetch.
"""

import time
from urllib.parse import quote, urlencode

from app.config import settings
from app.models.api import FreeModelInfo
from app.models.domain import FreeImageParams, FreeImageResult

MIN_DIMENSION = 64
MAX_DIMENSION = 2048

AVAILABLE_MODELS: dict[str, FreeModelInfo] = {
    "flux": FreeModelInfo(
        name="Flux",
        description="Ultra-high quality realistic images with incredible detail",
        style="Photorealistic, hyper-detailed, professional",
    ),
    "stability-ai": FreeModelInfo(
        name="Stability AI",
        description="Artistic and creative images with unique stylized results",
        style="Artistic, creative, stylized",
    ),
    "turbo": FreeModelInfo(
        name="Turbo",
        description="Lightning-fast generation with good quality output",
        style="Fast, efficient, quality-optimized",
    ),
}


def default_seed() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def validate_image_params(
    prompt: str,
    width: int | None = None,
    height: int | None = None,
    model: str | None = None,
    max_prompt_length: int | None = None,
) -> list[str]:
    """Return every validation error for a free image request; empty means valid."""
    errors: list[str] = []
    limit = max_prompt_length or settings.prompt_max_length

    if not prompt or not prompt.strip():
        errors.append("Prompt is required")
    elif len(prompt) > limit:
        errors.append(f"Prompt must be less than {limit} characters")

    if width is not None and not MIN_DIMENSION <= width <= MAX_DIMENSION:
        errors.append(f"Width must be between {MIN_DIMENSION} and {MAX_DIMENSION} pixels")

    if height is not None and not MIN_DIMENSION <= height <= MAX_DIMENSION:
        errors.append(f"Height must be between {MIN_DIMENSION} and {MAX_DIMENSION} pixels")

    if model is not None and model not in AVAILABLE_MODELS:
        errors.append(f"Unknown model: {model}")

    return errors


def resolve_params(
    prompt: str,
    model: str | None = None,
    width: int | None = None,
    height: int | None = None,
    seed: int | None = None,
    nologo: bool = True,
) -> FreeImageParams:
    """Fill unset parameters with configured defaults."""
    return FreeImageParams(
        prompt=prompt,
        model=model or settings.free_image_default_model,
        width=width if width is not None else settings.free_image_default_width,
        height=height if height is not None else settings.free_image_default_height,
        seed=seed if seed is not None else default_seed(),
        nologo=nologo,
    )


def generate_free_image(params: FreeImageParams, base_url: str | None = None) -> FreeImageResult:
    """Build the image URL for a prompt."""
    base = (base_url or settings.free_image_base_url).rstrip("/")
    encoded_prompt = quote(params.prompt, safe="-_.!~*'()")
    query = urlencode(
        {
            "width": params.width,
            "height": params.height,
            "seed": params.seed,
            "model": params.model,
        }
    )

    return FreeImageResult(
        image_url=f"{base}/{encoded_prompt}?{query}",
        model=params.model,
        prompt=params.prompt,
        seed=params.seed,
    )
