"""HTTP client for the remote combination oracle."""
from __future__ import annotations

import json
from typing import Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import CrafterConfig


class OracleError(RuntimeError):
    """Raised when a combination request fails in transport or decoding."""


class CombinationResult(BaseModel):
    result: str = Field(min_length=1)
    emoji: str = ""
    is_new: bool = Field(default=False, alias="isNew")

    model_config = ConfigDict(populate_by_name=True)


class HttpOracle:
    """
    Resolves element pairs through the game's pair endpoint.

    The two names are always sent in lexicographic order, so the same
    unordered pair produces the same request.
    """

    def __init__(self, config: Optional[CrafterConfig] = None,
                 client: Optional[httpx.Client] = None):
        self._config = config or CrafterConfig()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=self._config.timeout,
            headers=self._config.headers,
        )

    @property
    def url(self) -> str:
        return str(self._config.api_url)

    def request_params(self, first: str, second: str) -> Dict[str, str]:
        low, high = sorted((first, second))
        return {"first": low, "second": high}

    def pair(self, first: str, second: str) -> CombinationResult:
        params = self.request_params(first, second)
        try:
            response = self._client.get(self.url, params=params, headers=self._config.headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise OracleError(
                f"HTTP error {exc.response.status_code} when combining "
                f"{params['first']} + {params['second']}: {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise OracleError(f"Request failure when reaching {self.url}: {exc}") from exc

        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise OracleError(f"Received invalid JSON from {self.url}: {exc}") from exc

        try:
            return CombinationResult.model_validate(payload)
        except ValidationError as exc:
            raise OracleError(f"Unexpected payload structure from {self.url}: {exc}") from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpOracle:
        return self

    def __exit__(self, *args) -> None:
        self.close()
