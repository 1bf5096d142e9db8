"""
Tests for the free image provider.
"""

from unittest.mock import patch

import pytest

from app.models.domain import FreeImageParams
from app.services.free_image import (
    AVAILABLE_MODELS,
    generate_free_image,
    resolve_params,
    validate_image_params,
)


class TestValidateImageParams:
    """Tests for request validation."""

    def test_valid_request_has_no_errors(self) -> None:
        assert validate_image_params("a cat", width=512, height=512, model="flux") == []

    @pytest.mark.parametrize("prompt", ["", "   "])
    def test_blank_prompt(self, prompt: str) -> None:
        assert validate_image_params(prompt) == ["Prompt is required"]

    def test_prompt_length_limit(self) -> None:
        assert validate_image_params("x" * 1000) == []
        assert validate_image_params("x" * 1001) == ["Prompt must be less than 1000 characters"]

    @pytest.mark.parametrize("size", [64, 2048])
    def test_dimension_bounds_inclusive(self, size: int) -> None:
        assert validate_image_params("a cat", width=size, height=size) == []

    @pytest.mark.parametrize("size", [63, 2049, 0])
    def test_dimension_out_of_range(self, size: int) -> None:
        assert validate_image_params("a cat", width=size, height=size) == [
            "Width must be between 64 and 2048 pixels",
            "Height must be between 64 and 2048 pixels",
        ]

    def test_unknown_model(self) -> None:
        assert validate_image_params("a cat", model="dalle") == ["Unknown model: dalle"]


class TestResolveParams:
    """Tests for default filling."""

    def test_defaults_from_settings(self) -> None:
        with patch("app.services.free_image.default_seed", return_value=1700000000000):
            params = resolve_params("a cat")

        assert params.model == "flux"
        assert params.width == 1024
        assert params.height == 1024
        assert params.seed == 1700000000000

    def test_explicit_values_kept(self) -> None:
        params = resolve_params("a cat", model="turbo", width=256, height=128, seed=0)

        assert (params.model, params.width, params.height, params.seed) == ("turbo", 256, 128, 0)


class TestGenerateFreeImage:
    """Tests for URL construction."""

    def test_url_layout(self) -> None:
        params = FreeImageParams(prompt="a cat & a dog?", model="flux", width=512, height=256, seed=7)

        result = generate_free_image(params, base_url="https://img.example/prompt/")

        assert result.image_url == (
            "https://img.example/prompt/a%20cat%20%26%20a%20dog%3F"
            "?width=512&height=256&seed=7&model=flux"
        )
        assert result.external_job_id == "free_flux_7"
        assert result.prompt == "a cat & a dog?"

    def test_models_catalogue(self) -> None:
        assert set(AVAILABLE_MODELS) == {"flux", "stability-ai", "turbo"}
        assert AVAILABLE_MODELS["flux"].name == "Flux"
