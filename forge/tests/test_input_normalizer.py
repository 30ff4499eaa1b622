"""
Tests for mapping the client's request body onto a GenerationRequest.
"""

import pytest

from forge.api.schemas import GenerateRequestBody
from forge.core.input_normalizer import (
    normalize_generate_body,
    normalize_mode,
    normalize_resolution,
    normalize_tier,
)


class TestAliases:
    """Client drift is tolerated rather than rejected."""

    @pytest.mark.parametrize("model,expected", [
        ("fast", "fast"), ("flash", "fast"), ("FLASH", "fast"), ("pro", "pro"),
        ("imagen-9", "pro"), ("", "pro"), (None, "pro"),
    ])
    def test_tier(self, model, expected):
        assert normalize_tier(model) == expected

    @pytest.mark.parametrize("resolution,expected", [
        ("1K", "1K"), ("2k", "2K"), ("4K", "4K"), ("1024", "1K"), ("2048", "2K"),
        ("4096", "4K"), ("8K", "1K"), (None, "1K"),
    ])
    def test_resolution(self, resolution, expected):
        assert normalize_resolution(resolution) == expected

    @pytest.mark.parametrize("mode,expected", [
        ("create", "create"), ("generate", "create"), ("edit", "refine"), ("refine", "refine"),
        (None, "create"), ("remix", "create"),
    ])
    def test_mode(self, mode, expected):
        assert normalize_mode(mode) == expected


class TestNormalizeBody:
    """Full body normalization."""

    def test_defaults(self):
        request = normalize_generate_body(GenerateRequestBody(prompt="  a red castle  "))

        assert request.prompt == "a red castle"
        assert request.tier == "pro"
        assert request.resolution == "1K"
        assert request.aspect_ratio == "1:1"
        assert request.variation_count == 1
        assert request.reference_assets == ()
        assert request.subject_asset is None

    def test_style_images_keep_order_and_weight(self):
        body = GenerateRequestBody(
            prompt="blend these",
            model="flash",
            numImages=9,
            styleImages=[
                {"url": "https://cdn.example.test/a.png", "strength": 0.5, "name": "hat"},
                {"url": "https://cdn.example.test/b.png"},
            ],
            negativePrompt=" blurry ",
        )
        request = normalize_generate_body(body)

        assert request.tier == "fast"
        assert request.variation_count == 4
        assert [r.source_url for r in request.reference_assets] == [
            "https://cdn.example.test/a.png", "https://cdn.example.test/b.png",
        ]
        assert request.reference_assets[0].weight == 0.5
        assert request.reference_assets[0].name == "hat"
        assert request.negative_prompt == "blurry"

    def test_refine_with_subject(self):
        body = GenerateRequestBody(prompt="make it blue", mode="edit", editImage="https://cdn.example.test/s.png")
        request = normalize_generate_body(body)

        assert request.mode == "refine"
        assert request.subject_asset.source_url == "https://cdn.example.test/s.png"

    def test_subject_ignored_outside_refine(self):
        body = GenerateRequestBody(prompt="a red castle", editImage="https://cdn.example.test/s.png")
        assert normalize_generate_body(body).subject_asset is None

    def test_unknown_fields_ignored(self):
        body = GenerateRequestBody.model_validate({"prompt": "a red castle", "quality": "ultra"})
        assert normalize_generate_body(body).prompt == "a red castle"


class TestLooseBodyValues:
    """Loosely typed body values are coerced or rejected as validation errors."""

    @pytest.mark.parametrize("num_images,expected", [
        (9.5, 4), ("many", 1), ("2", 2), (None, 1), (0, 1), ([3], 1),
    ])
    def test_num_images_coerced(self, num_images, expected):
        body = GenerateRequestBody(prompt="a red castle", numImages=num_images)
        assert normalize_generate_body(body).variation_count == expected

    @pytest.mark.parametrize("prompt", [12, ["a red castle"], {"text": "a red castle"}])
    def test_non_text_prompt_rejected(self, prompt):
        from forge.core.errors import ValidationError

        with pytest.raises(ValidationError, match="must be a string"):
            normalize_generate_body(GenerateRequestBody(prompt=prompt))

    def test_seed_not_part_of_body(self):
        body = GenerateRequestBody.model_validate({"prompt": "a red castle", "seed": "42"})
        assert "seed" not in GenerateRequestBody.model_fields
        assert not hasattr(body, "seed")
