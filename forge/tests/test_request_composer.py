"""
Unit tests for the request composer.

Covers the tier capability policy (reference and resolution ceilings), the
style preamble, the avoid clause and the generationConfig block.
"""

import pytest

from forge.core.errors import ValidationError
from forge.pipeline.context import GenerationRequest, UploadedAsset, clamp_variation_count
from forge.stages.request_composer import (
    build_prompt_text,
    clamp_references,
    clamp_resolution,
    compose,
)


def _assets(n):
    return [UploadedAsset(handle=f"files/ref-{i}", mime_type="image/jpeg") for i in range(n)]


class TestVariationClamping:
    """Requested variation counts are clamped, never rejected."""

    @pytest.mark.parametrize("requested,expected", [
        (9, 4), (4, 4), (2, 2), (1, 1), (0, 1), (-3, 1), (None, 1), ("3", 3), ("abc", 1),
    ])
    def test_clamp(self, requested, expected):
        assert clamp_variation_count(requested) == expected

    def test_compose_carries_clamped_count(self):
        request = GenerationRequest.create(prompt="a red castle", variation_count=9)
        payload = compose(request, [])
        assert payload.variation_count == 4


class TestReferenceCeiling:
    """Only the first min(k, ceiling) references reach the payload, in order."""

    def test_fast_tier_truncates_to_three(self):
        request = GenerationRequest.create(prompt="blend these", tier="fast")
        payload = compose(request, _assets(5))

        file_parts = [p for p in payload.parts if "file_data" in p]
        assert payload.reference_count == 3
        assert [p["file_data"]["file_uri"] for p in file_parts] == ["files/ref-0", "files/ref-1", "files/ref-2"]

    def test_pro_tier_keeps_all_under_ceiling(self):
        request = GenerationRequest.create(prompt="blend these", tier="pro")
        payload = compose(request, _assets(5))
        assert payload.reference_count == 5
        assert len(payload.parts) == 6

    def test_pro_tier_ceiling(self):
        assert len(clamp_references(list(range(20)), "pro")) == 14

    def test_text_part_comes_first(self):
        request = GenerationRequest.create(prompt="blend these", tier="pro")
        payload = compose(request, _assets(2))
        assert "text" in payload.parts[0]
        assert all("file_data" in p for p in payload.parts[1:])
        assert payload.parts[1]["file_data"]["mime_type"] == "image/jpeg"

    def test_unknown_tier_rejected(self):
        with pytest.raises(ValidationError):
            clamp_references([1, 2], "ultra")


class TestResolutionCeiling:
    """Resolutions above the tier ceiling are downgraded, not rejected."""

    def test_fast_downgrades_4k(self):
        assert clamp_resolution("4K", "fast") == "1K"

    def test_pro_keeps_4k(self):
        assert clamp_resolution("4K", "pro") == "4K"

    def test_payload_omits_image_size_at_1k(self):
        request = GenerationRequest.create(prompt="a red castle", tier="fast", resolution="4K")
        payload = compose(request, [])

        assert payload.resolution == "1K"
        assert "imageSize" not in payload.body["generationConfig"]["imageConfig"]

    def test_payload_sets_image_size_above_1k(self):
        request = GenerationRequest.create(prompt="a red castle", tier="pro", resolution="2K", aspect_ratio="16:9")
        config = compose(request, []).body["generationConfig"]

        assert config["responseModalities"] == ["TEXT", "IMAGE"]
        assert config["imageConfig"] == {"aspectRatio": "16:9", "imageSize": "2K"}


class TestPromptText:
    """Preamble, prompt and avoid clause assembly."""

    def test_plain_prompt_without_references(self):
        assert build_prompt_text("a red castle", 0) == "a red castle"

    def test_preamble_with_references(self):
        text = build_prompt_text("a red castle", 2)
        assert text.startswith("Look at these 2 reference images carefully.")
        assert text.endswith("Create: a red castle")

    def test_singular_preamble(self):
        assert "1 reference image carefully" in build_prompt_text("a hat", 1)

    def test_avoid_clause(self):
        text = build_prompt_text("a red castle", 0, negative_prompt="  blurry, text ")
        assert text == "a red castle Avoid: blurry, text"

    def test_blank_negative_prompt_ignored(self):
        assert "Avoid" not in build_prompt_text("a red castle", 0, negative_prompt="   ")

    def test_refine_wording(self):
        assert build_prompt_text("make it blue", 0, refine=True) == "Edit the provided image: make it blue"


class TestRefineSubject:
    """In refine mode the subject image follows the text, ahead of references."""

    def test_subject_first_image_part(self):
        from forge.pipeline.context import ReferenceAsset

        request = GenerationRequest.create(
            prompt="make it blue", tier="fast", mode="refine",
            subject_asset=ReferenceAsset(source_url="https://example.test/subject.png"),
        )
        subject = UploadedAsset(handle="files/subject", mime_type="image/jpeg")
        payload = compose(request, _assets(3), subject=subject)

        assert payload.parts[1]["file_data"]["file_uri"] == "files/subject"
        # Subject does not count against the reference ceiling
        assert payload.reference_count == 3
        assert len(payload.parts) == 5

    def test_compose_is_deterministic(self):
        request = GenerationRequest.create(prompt="a red castle", tier="pro", resolution="4K")
        assert compose(request, _assets(2)) == compose(request, _assets(2))
