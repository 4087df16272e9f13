"""Tests for the provider capability registry."""

from typing import Any

import pytest

from movie_engine.adapters.llm.stub import StubLLMProvider
from movie_engine.adapters.video_gen.runway import RunwayProvider
from movie_engine.adapters.video_gen.stub import StubVideoGenProvider
from movie_engine.db.models import ProviderBindingModel
from movie_engine.domain.enums import Capability
from movie_engine.errors import ProviderNotConfiguredError
from movie_engine.services.encryption import encrypt_secret
from movie_engine.services.providers import (
    ProviderBinding,
    ProviderEndpoint,
    ProviderRegistry,
    ProviderSet,
    build_adapter,
)


def binding(
    capability: Capability,
    provider_id: str,
    api_key: str | None = None,
    fallback: ProviderEndpoint | None = None,
    simulation_mode: bool = False,
    **config: Any,
) -> ProviderBinding:
    return ProviderBinding(
        capability=capability,
        primary=ProviderEndpoint(
            provider_id=provider_id,
            api_key_encrypted=encrypt_secret(api_key) if api_key else None,
            config=config,
        ),
        fallback=fallback,
        simulation_mode=simulation_mode,
    )


class TestRegistryFromSession:
    def test_loads_active_bindings_by_priority(self, session_factory: Any) -> None:
        with session_factory() as session:
            session.add_all(
                [
                    ProviderBindingModel(
                        capability="video",
                        provider_id="luma",
                        api_key_encrypted=encrypt_secret("luma-key"),
                        priority=1,
                    ),
                    ProviderBindingModel(
                        capability="video",
                        provider_id="runway",
                        api_key_encrypted=encrypt_secret("runway-key"),
                        config={"model": "gen4.5"},
                        priority=0,
                    ),
                    ProviderBindingModel(capability="script", provider_id="stub", simulation_mode=True),
                    ProviderBindingModel(capability="music", provider_id="fal", is_active=False),
                    ProviderBindingModel(capability="hologram", provider_id="acme"),
                ]
            )

        with session_factory() as session:
            registry = ProviderRegistry.from_session(session)

        video = registry.binding(Capability.VIDEO)
        assert video is not None
        assert video.primary_provider_id == "runway"
        assert video.fallback_provider_id == "luma"
        assert video.primary.config == {"model": "gen4.5"}
        assert registry.is_simulated(Capability.SCRIPT)
        assert not registry.is_simulated(Capability.VIDEO)
        assert registry.binding(Capability.MUSIC) is None
        assert set(registry.bindings) == {Capability.VIDEO, Capability.SCRIPT}


class TestValidation:
    def test_missing_required_capability(self) -> None:
        registry = ProviderRegistry({Capability.SCRIPT: binding(Capability.SCRIPT, "stub")})

        result = registry.validate()

        assert result.ok is False
        assert result.missing == [Capability.VIDEO]
        assert result.describe_missing() == "Missing provider capabilities: video"
        assert "voice: not configured (optional)" in result.warnings

    def test_ready_with_credentials(self) -> None:
        registry = ProviderRegistry(
            {
                Capability.SCRIPT: binding(Capability.SCRIPT, "openai", api_key="sk-test"),
                Capability.VIDEO: binding(Capability.VIDEO, "runway", api_key="rw-test"),
            }
        )

        result = registry.validate()

        assert result.ok is True
        assert result.configured == [Capability.SCRIPT, Capability.VIDEO]
        assert result.to_dict()["missing"] == []

    def test_optional_capability_can_become_required(self) -> None:
        registry = ProviderRegistry(
            {
                Capability.SCRIPT: binding(Capability.SCRIPT, "stub"),
                Capability.VIDEO: binding(Capability.VIDEO, "stub"),
            }
        )

        result = registry.validate([Capability.SCRIPT, Capability.VIDEO, Capability.MUSIC])

        assert result.ok is False
        assert result.missing == [Capability.MUSIC]

    def test_key_required_for_paid_provider(self) -> None:
        registry = ProviderRegistry({Capability.VIDEO: binding(Capability.VIDEO, "runway")})

        result = registry.validate([Capability.VIDEO])

        assert result.missing == [Capability.VIDEO]
        assert any("has no API key" in w for w in result.warnings)

    def test_undecryptable_key_is_not_configured(self) -> None:
        broken = ProviderBinding(
            capability=Capability.VIDEO,
            primary=ProviderEndpoint(provider_id="runway", api_key_encrypted="not-a-fernet-token"),
        )
        registry = ProviderRegistry({Capability.VIDEO: broken})

        with pytest.raises(ProviderNotConfiguredError, match="credential unusable"):
            registry.resolve(Capability.VIDEO)

    def test_unknown_provider_id(self) -> None:
        registry = ProviderRegistry({Capability.VIDEO: binding(Capability.VIDEO, "acme", api_key="k")})

        with pytest.raises(ProviderNotConfiguredError, match="unknown provider 'acme'"):
            registry.resolve(Capability.VIDEO)


class TestFallbackAndSimulation:
    def test_fallback_used_when_primary_unusable(self) -> None:
        registry = ProviderRegistry(
            {
                Capability.VIDEO: ProviderBinding(
                    capability=Capability.VIDEO,
                    primary=ProviderEndpoint(provider_id="runway"),
                    fallback=ProviderEndpoint(
                        provider_id="luma", api_key_encrypted=encrypt_secret("luma-key")
                    ),
                )
            }
        )

        resolved = registry.resolve(Capability.VIDEO)
        result = registry.validate([Capability.VIDEO])

        assert resolved.provider_id == "luma"
        assert resolved.api_key == "luma-key"
        assert result.ok is True
        assert any("using fallback provider 'luma'" in w for w in result.warnings)

    def test_simulation_needs_no_credentials_and_builds_stub(self) -> None:
        registry = ProviderRegistry(
            {Capability.VIDEO: binding(Capability.VIDEO, "runway", simulation_mode=True)}
        )

        resolved = registry.resolve(Capability.VIDEO)

        assert resolved.simulated is True
        assert isinstance(build_adapter(resolved), StubVideoGenProvider)

    def test_simulation_is_per_capability(self) -> None:
        registry = ProviderRegistry(
            {
                Capability.SCRIPT: binding(Capability.SCRIPT, "openai", simulation_mode=True),
                Capability.VIDEO: binding(Capability.VIDEO, "runway", api_key="rw-test", model="veo3"),
            }
        )
        providers = ProviderSet(registry)

        assert isinstance(providers.llm(), StubLLMProvider)
        video = providers.video()
        assert isinstance(video, RunwayProvider)
        assert video.api_key == "rw-test"
        assert video.model_name == "veo3"


class TestProviderSet:
    def test_optional_capabilities_return_none(self) -> None:
        providers = ProviderSet(ProviderRegistry())

        assert providers.voice() is None
        assert providers.music() is None
        with pytest.raises(ProviderNotConfiguredError):
            providers.video()

    def test_overrides_and_caching(self) -> None:
        stub = StubVideoGenProvider()
        providers = ProviderSet(ProviderRegistry(), overrides={Capability.VIDEO: stub})

        assert providers.video() is stub
        assert providers.video() is providers.get(Capability.VIDEO)

    def test_storage_stub_is_simulated(self) -> None:
        registry = ProviderRegistry({Capability.STORAGE: binding(Capability.STORAGE, "stub")})

        storage = ProviderSet(registry).storage()

        assert storage.simulated is True
