"""Tests for model profiles and the registry."""

import pytest
import yaml
from pydantic import ValidationError

from scrollgen.models.model_profile import DEFAULT_PROFILES, ModelProfile, ModelRegistry


class TestModelProfile:
    """Test profile validation."""

    def test_steps_must_be_positive(self):
        with pytest.raises(ValidationError):
            ModelProfile(id="x", name="vendor/x", steps=0)

    def test_defaults(self):
        profile = ModelProfile(id="x", name="vendor/x")
        assert profile.supports_text_to_image
        assert not profile.supports_outpainting


class TestModelRegistry:
    """Test profile lookup and fallback selection."""

    def test_builtin_profiles(self, registry):
        assert len(registry) == len(DEFAULT_PROFILES)
        assert "flux-schnell" in registry
        assert "flux-fill-pro" in registry
        assert "flux-schnell-lora" in registry

    def test_fill_model_supports_outpainting(self, registry):
        assert registry.get("flux-fill-pro").supports_outpainting
        assert not registry.get("flux-schnell").supports_outpainting

    def test_resolve_known(self, registry):
        assert registry.resolve("flux-schnell-lora", default="flux-schnell").id == "flux-schnell-lora"

    def test_resolve_unknown_uses_default(self, registry):
        assert registry.resolve("dall-e", default="flux-schnell").id == "flux-schnell"

    def test_resolve_none_uses_default(self, registry):
        assert registry.resolve(None, default="flux-fill-pro").id == "flux-fill-pro"

    def test_resolve_unknown_default_uses_fastest(self, registry):
        assert registry.resolve("nope", default="also-nope").id == "flux-schnell"

    def test_fastest_is_text_to_image(self, registry):
        fastest = registry.fastest()
        assert fastest.id == "flux-schnell"
        assert fastest.supports_text_to_image

    def test_profiles_sorted_by_priority(self, registry):
        priorities = [p.priority for p in registry.profiles()]
        assert priorities == sorted(priorities)

    def test_empty_registry_rejected(self):
        with pytest.raises(ValueError):
            ModelRegistry([])

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "models.yaml"
        path.write_text(yaml.safe_dump({
            "models": [
                {"id": "fast", "name": "vendor/fast", "steps": 2, "priority": 1},
                {
                    "id": "fill",
                    "name": "vendor/fill",
                    "steps": 8,
                    "supports_outpainting": True,
                    "supports_text_to_image": False,
                    "priority": 2,
                },
            ]
        }))
        registry = ModelRegistry.load(path)
        assert registry.ids() == ["fast", "fill"]
        assert registry.get("fill").steps == 8
        assert registry.fastest().id == "fast"

    def test_load_without_file_uses_builtins(self):
        assert len(ModelRegistry.load(None)) == len(DEFAULT_PROFILES)
