"""Submit/poll helper for models hosted on the fal.ai queue."""

import os
from typing import Any

import fal_client
import httpx

from movie_engine.adapters.base import (
    DEFAULT_ASSET_PATHS,
    JobState,
    JobStatus,
    extract_field,
)
from movie_engine.errors import ProviderError
from movie_engine.logging import get_logger

logger = get_logger(__name__)


class FalQueue:
    """Thin wrapper over the fal_client queue calls for one application.

    fal reports Queued / InProgress / Completed; a completed request's output
    is fetched with ``result``, which raises when the request failed.
    """

    def __init__(self, application: str, api_key: str | None = None) -> None:
        self.application = application
        self.api_key = api_key
        # Each binding keeps its own credential; None falls back to FAL_KEY
        self.client = fal_client.AsyncClient(key=api_key)

    async def submit(self, arguments: dict[str, Any]) -> str:
        try:
            handle = await self.client.submit(self.application, arguments=arguments)
        except httpx.TransportError:
            raise
        except Exception as e:
            raise ProviderError(str(e), provider="fal") from e

        logger.info(
            "fal_request_submitted",
            application=self.application,
            request_id=handle.request_id,
        )
        return handle.request_id

    async def fetch_status(
        self,
        request_id: str,
        asset_paths: tuple[str, ...] = DEFAULT_ASSET_PATHS,
    ) -> JobStatus:
        status = await self.client.status(self.application, request_id)
        if not isinstance(status, fal_client.Completed):
            return JobStatus(state=JobState.RUNNING)

        try:
            result = await self.client.result(self.application, request_id)
        except httpx.TransportError:
            raise
        except Exception as e:
            return JobStatus(state=JobState.FAILED, error=str(e))

        asset_url = extract_field(result, asset_paths)
        if not asset_url:
            logger.error(
                "fal_no_output_url",
                application=self.application,
                result_keys=list(result.keys()) if isinstance(result, dict) else None,
            )
            return JobStatus(
                state=JobState.FAILED,
                error="fal request completed but no output URL was returned",
                raw=result,
            )
        return JobStatus(state=JobState.SUCCEEDED, asset_url=asset_url, raw=result)

    def is_configured(self) -> bool:
        return bool(self.api_key or os.environ.get("FAL_KEY"))
