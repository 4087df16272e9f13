"""Provider readiness endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from movie_engine.api.deps import SessionDep
from movie_engine.services.providers import RUN_CAPABILITIES, ProviderRegistry

router = APIRouter(prefix="/providers", tags=["Providers"])


class ProviderStatusResponse(BaseModel):
    """Validation report for every capability."""

    ok: bool
    configured: list[str]
    missing: list[str]
    warnings: list[str]
    bindings: dict[str, dict[str, Any]]


@router.get(
    "/status",
    response_model=ProviderStatusResponse,
    summary="Provider status",
    description="Which capabilities are configured, simulated or missing.",
)
async def provider_status(session: SessionDep) -> ProviderStatusResponse:
    registry = ProviderRegistry.from_session(session)
    validation = registry.validate(RUN_CAPABILITIES)
    bindings = {
        capability.value: {
            "primary": binding.primary_provider_id,
            "fallback": binding.fallback_provider_id,
            "simulation_mode": binding.simulation_mode,
        }
        for capability, binding in registry.bindings.items()
    }
    return ProviderStatusResponse(**validation.to_dict(), bindings=bindings)
