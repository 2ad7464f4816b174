"""Validation of position pushes coming from game servers."""
from __future__ import annotations

import hmac
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedIngest, UnauthorizedIngest

_LOGGER = logging.getLogger("LiveMap.Relay.Ingest")


class IngestRequest(BaseModel):
    """Body of ``POST /positions``. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    token: str
    job_id: str = Field(alias="jobId", min_length=1)
    players: List[Any]
    server_shutdown: bool = Field(default=False, alias="serverShutdown")

    @field_validator("players")
    @classmethod
    def _players_are_records(cls, value: List[Any]) -> List[Any]:
        for index, record in enumerate(value):
            if not isinstance(record, (dict, list)):
                raise ValueError(f"player #{index} must be an object or array")
        return value

    def broadcast_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"jobId": self.job_id, "players": self.players}
        if self.server_shutdown:
            payload["serverShutdown"] = True
        return payload


class IngestService:
    """Checks the shared secret, then the shape, of an incoming push."""

    def __init__(self, token: Optional[str]) -> None:
        self._token = token.encode("utf-8") if token else None
        if self._token is None:
            _LOGGER.warning("No ingest token configured; every position push will be rejected")

    def authorize(self, raw: Mapping[str, Any]) -> None:
        supplied = raw.get("token")
        if self._token is None or not isinstance(supplied, str):
            raise UnauthorizedIngest("missing or invalid token")
        if not hmac.compare_digest(supplied.encode("utf-8"), self._token):
            raise UnauthorizedIngest("missing or invalid token")

    def accept(self, raw: Any) -> Dict[str, Any]:
        """Return the payload to broadcast for ``raw`` or raise an ``IngestError``."""
        if not isinstance(raw, Mapping):
            raise MalformedIngest("request body must be a JSON object")
        self.authorize(raw)
        try:
            request = IngestRequest.model_validate(dict(raw))
        except ValidationError as exc:
            errors = exc.errors(include_url=False, include_input=False)
            summary = "; ".join(
                f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in errors
            )
            raise MalformedIngest(summary or "invalid request body") from exc
        return request.broadcast_payload()
