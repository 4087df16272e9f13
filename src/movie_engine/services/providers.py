"""Provider capability registry.

Answers, per capability, which external provider a run should use and
whether that capability is simulated. Bindings are read from the
``provider_bindings`` table; the registry itself never writes.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from movie_engine.adapters.image_gen import (
    ImageGenProvider,
    OpenAIDalleProvider,
    StubImageGenProvider,
)
from movie_engine.adapters.lip_sync import (
    FalLipSyncProvider,
    LipSyncProvider,
    StubLipSyncProvider,
)
from movie_engine.adapters.llm import LLMProvider, OpenAIProvider, StubLLMProvider
from movie_engine.adapters.music import FalMusicProvider, MusicProvider, StubMusicProvider
from movie_engine.adapters.renderer import (
    CreatomateRenderer,
    RendererProvider,
    StubRendererProvider,
)
from movie_engine.adapters.video_gen import (
    KlingProvider,
    LumaProvider,
    RunwayProvider,
    StubVideoGenProvider,
    VideoGenProvider,
)
from movie_engine.adapters.voiceover import (
    ElevenLabsProvider,
    StubVoiceoverProvider,
    VoiceoverProvider,
)
from movie_engine.config import settings
from movie_engine.db.models import ProviderBindingModel
from movie_engine.domain.enums import Capability
from movie_engine.errors import ConfigurationError, ProviderNotConfiguredError
from movie_engine.logging import get_logger
from movie_engine.services.encryption import EncryptionError, decrypt_secret
from movie_engine.services.storage import StorageService

logger = get_logger(__name__)

# Minimum needed to produce any output at all
REQUIRED_CAPABILITIES: tuple[Capability, ...] = (Capability.SCRIPT, Capability.VIDEO)

# Every run also writes its outputs to storage
RUN_CAPABILITIES: tuple[Capability, ...] = (*REQUIRED_CAPABILITIES, Capability.STORAGE)


@dataclass
class ResolvedProvider:
    """A usable provider for one capability, credential decrypted."""

    capability: Capability
    provider_id: str
    api_key: str | None = None
    api_url: str | None = None
    config: dict[str, Any] = field(default_factory=dict)
    simulated: bool = False


# Adapter constructors per capability and provider id
AdapterFactory = Callable[[ResolvedProvider], Any]

ADAPTERS: dict[Capability, dict[str, AdapterFactory]] = {
    Capability.SCRIPT: {
        "openai": lambda p: OpenAIProvider(p.api_key, model=p.config.get("model"), base_url=p.api_url),
        "stub": lambda p: StubLLMProvider(),
    },
    Capability.VIDEO: {
        "runway": lambda p: RunwayProvider(p.api_key, base_url=p.api_url, model=p.config.get("model")),
        "luma": lambda p: LumaProvider(p.api_key, base_url=p.api_url, model=p.config.get("model")),
        "kling": lambda p: KlingProvider(p.api_key, model=p.config.get("model")),
        "stub": lambda p: StubVideoGenProvider(),
    },
    Capability.VOICE: {
        "elevenlabs": lambda p: ElevenLabsProvider(
            p.api_key,
            model=p.config.get("model"),
            base_url=p.api_url,
            voice_overrides=p.config.get("voices"),
        ),
        "stub": lambda p: StubVoiceoverProvider(),
    },
    Capability.LIP_SYNC: {
        "fal": lambda p: FalLipSyncProvider(p.api_key, model=p.config.get("model")),
        "stub": lambda p: StubLipSyncProvider(),
    },
    Capability.MUSIC: {
        "fal": lambda p: FalMusicProvider(p.api_key, model=p.config.get("model")),
        "stub": lambda p: StubMusicProvider(),
    },
    Capability.IMAGE: {
        "openai": lambda p: OpenAIDalleProvider(p.api_key, model=p.config.get("model"), base_url=p.api_url),
        "stub": lambda p: StubImageGenProvider(),
    },
    Capability.STORAGE: {
        "local": lambda p: StorageService(
            base_path=p.config.get("base_path"),
            public_base_url=p.api_url,
        ),
        "stub": lambda p: StorageService(simulated=True),
    },
}

# Providers that work without a credential
CREDENTIAL_FREE = frozenset({"stub", "local"})


@dataclass
class ProviderEndpoint:
    """One configured provider (a binding row)."""

    provider_id: str
    api_key_encrypted: str | None = None
    api_url: str | None = None
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderBinding:
    """Primary and optional fallback provider for one capability."""

    capability: Capability
    primary: ProviderEndpoint
    fallback: ProviderEndpoint | None = None
    simulation_mode: bool = False

    @property
    def primary_provider_id(self) -> str:
        return self.primary.provider_id

    @property
    def fallback_provider_id(self) -> str | None:
        return self.fallback.provider_id if self.fallback else None


@dataclass
class ProviderValidation:
    """Result of a readiness check."""

    ok: bool
    configured: list[Capability]
    missing: list[Capability]
    warnings: list[str]

    def describe_missing(self) -> str:
        return "Missing provider capabilities: " + ", ".join(c.value for c in self.missing)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "configured": [c.value for c in self.configured],
            "missing": [c.value for c in self.missing],
            "warnings": self.warnings,
        }


class ProviderRegistry:
    """Resolves capability bindings into usable providers."""

    def __init__(self, bindings: dict[Capability, ProviderBinding] | None = None) -> None:
        self.bindings = bindings or {}

    @classmethod
    def from_session(cls, session: Session) -> "ProviderRegistry":
        """Load active bindings; the lowest priority row is primary, the next fallback."""
        rows = session.execute(
            select(ProviderBindingModel)
            .where(ProviderBindingModel.is_active.is_(True))
            .order_by(ProviderBindingModel.capability, ProviderBindingModel.priority)
        ).scalars()

        grouped: dict[Capability, list[ProviderBindingModel]] = {}
        for row in rows:
            try:
                capability = Capability(row.capability)
            except ValueError:
                logger.warning(
                    "provider_binding_unknown_capability",
                    capability=row.capability,
                    provider_id=row.provider_id,
                )
                continue
            grouped.setdefault(capability, []).append(row)

        bindings = {}
        for capability, group in grouped.items():
            primary = group[0]
            bindings[capability] = ProviderBinding(
                capability=capability,
                primary=_endpoint(primary),
                fallback=_endpoint(group[1]) if len(group) > 1 else None,
                simulation_mode=primary.simulation_mode,
            )
        return cls(bindings)

    def binding(self, capability: Capability) -> ProviderBinding | None:
        return self.bindings.get(capability)

    def is_simulated(self, capability: Capability) -> bool:
        binding = self.bindings.get(capability)
        return bool(binding and binding.simulation_mode)

    def _resolve_endpoint(
        self, capability: Capability, endpoint: ProviderEndpoint
    ) -> ResolvedProvider:
        if endpoint.provider_id not in ADAPTERS[capability]:
            raise ConfigurationError(f"unknown provider '{endpoint.provider_id}'")

        api_key = None
        if endpoint.provider_id not in CREDENTIAL_FREE:
            if not endpoint.api_key_encrypted:
                raise ConfigurationError(f"provider '{endpoint.provider_id}' has no API key")
            try:
                api_key = decrypt_secret(endpoint.api_key_encrypted)
            except EncryptionError as e:
                raise ConfigurationError(
                    f"provider '{endpoint.provider_id}' credential unusable: {e}"
                ) from e

        return ResolvedProvider(
            capability=capability,
            provider_id=endpoint.provider_id,
            api_key=api_key,
            api_url=endpoint.api_url,
            config=dict(endpoint.config),
        )

    def _try_resolve(self, capability: Capability) -> tuple[ResolvedProvider | None, list[str]]:
        """Resolve a capability, collecting warnings instead of raising."""
        binding = self.bindings.get(capability)
        if binding is None:
            return None, []

        if binding.simulation_mode:
            return (
                ResolvedProvider(
                    capability=capability,
                    provider_id=binding.primary_provider_id,
                    simulated=True,
                ),
                [],
            )

        warnings: list[str] = []
        try:
            return self._resolve_endpoint(capability, binding.primary), warnings
        except ConfigurationError as primary_error:
            if binding.fallback is None:
                warnings.append(f"{capability.value}: {primary_error}")
                return None, warnings
            try:
                resolved = self._resolve_endpoint(capability, binding.fallback)
            except ConfigurationError as fallback_error:
                warnings.append(f"{capability.value}: {primary_error}")
                warnings.append(f"{capability.value} fallback: {fallback_error}")
                return None, warnings
            warnings.append(
                f"{capability.value}: {primary_error}; "
                f"using fallback provider '{resolved.provider_id}'"
            )
            return resolved, warnings

    def resolve(self, capability: Capability) -> ResolvedProvider:
        """Resolve a capability to a usable provider.

        Raises:
            ProviderNotConfiguredError: If neither primary nor fallback resolves.
        """
        resolved, warnings = self._try_resolve(capability)
        if resolved is None:
            raise ProviderNotConfiguredError(capability.value, "; ".join(warnings) or None)
        return resolved

    def validate(
        self, required: Iterable[Capability] = REQUIRED_CAPABILITIES
    ) -> ProviderValidation:
        """Check every capability; ``ok`` only if all required ones resolve."""
        required_set = set(required)
        configured: list[Capability] = []
        missing: list[Capability] = []
        warnings: list[str] = []

        for capability in Capability:
            resolved, cap_warnings = self._try_resolve(capability)
            warnings.extend(cap_warnings)
            if resolved is not None:
                configured.append(capability)
                if resolved.simulated:
                    warnings.append(f"{capability.value}: simulation mode, no paid calls")
            elif capability in required_set:
                missing.append(capability)
            else:
                warnings.append(f"{capability.value}: not configured (optional)")

        result = ProviderValidation(
            ok=not missing,
            configured=configured,
            missing=missing,
            warnings=warnings,
        )
        logger.info(
            "providers_validated",
            ok=result.ok,
            configured=[c.value for c in configured],
            missing=[c.value for c in missing],
        )
        return result


def _endpoint(row: ProviderBindingModel) -> ProviderEndpoint:
    return ProviderEndpoint(
        provider_id=row.provider_id,
        api_key_encrypted=row.api_key_encrypted,
        api_url=row.api_url,
        config=dict(row.config or {}),
    )


def build_adapter(resolved: ResolvedProvider) -> Any:
    """Instantiate the adapter for a resolved provider.

    Simulated capabilities always get the stub adapter.
    """
    factories = ADAPTERS[resolved.capability]
    if resolved.simulated:
        return factories["stub"](resolved)
    return factories[resolved.provider_id](resolved)


def get_renderer_provider() -> RendererProvider:
    """Get the configured rendering provider."""
    if settings.renderer_provider == "creatomate":
        if not settings.creatomate_api_key:
            raise ConfigurationError("CREATOMATE_API_KEY is required for renderer_provider=creatomate")
        return CreatomateRenderer(settings.creatomate_api_key)
    return StubRendererProvider()


class ProviderSet:
    """Adapters for one run, built lazily from the registry.

    ``overrides`` replaces the adapter for a capability outright.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        overrides: dict[Capability, Any] | None = None,
        renderer: RendererProvider | None = None,
    ) -> None:
        self.registry = registry
        self._cache: dict[Capability, Any] = dict(overrides or {})
        self._renderer = renderer

    def get(self, capability: Capability) -> Any:
        """Adapter for a capability.

        Raises:
            ProviderNotConfiguredError: If the capability does not resolve.
        """
        if capability not in self._cache:
            resolved = self.registry.resolve(capability)
            self._cache[capability] = build_adapter(resolved)
            logger.debug(
                "provider_adapter_built",
                capability=capability.value,
                provider=resolved.provider_id,
                simulated=resolved.simulated,
            )
        return self._cache[capability]

    def optional(self, capability: Capability) -> Any | None:
        """Adapter for a capability, or None when it is not configured."""
        try:
            return self.get(capability)
        except ProviderNotConfiguredError:
            return None

    def llm(self) -> LLMProvider:
        return self.get(Capability.SCRIPT)

    def video(self) -> VideoGenProvider:
        return self.get(Capability.VIDEO)

    def voice(self) -> VoiceoverProvider | None:
        return self.optional(Capability.VOICE)

    def lip_sync(self) -> LipSyncProvider | None:
        return self.optional(Capability.LIP_SYNC)

    def music(self) -> MusicProvider | None:
        return self.optional(Capability.MUSIC)

    def image(self) -> ImageGenProvider | None:
        return self.optional(Capability.IMAGE)

    def storage(self) -> StorageService:
        return self.get(Capability.STORAGE)

    def renderer(self) -> RendererProvider:
        if self._renderer is None:
            self._renderer = get_renderer_provider()
        return self._renderer
