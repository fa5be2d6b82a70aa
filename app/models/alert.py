"""Alert records as delivered by the backend."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

AlertId = int | str

# Columns lifted out of the backend row; everything else is display payload.
_ENVELOPE_FIELDS = {"id", "overlay_id", "is_shown", "payload"}


class Alert(BaseModel):
    """A single notification to be shown once on an overlay."""

    model_config = ConfigDict(frozen=True)

    id: AlertId
    overlay_id: str | None = None
    is_shown: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "payload" in data:
            return data
        payload = {key: value for key, value in data.items() if key not in _ENVELOPE_FIELDS}
        envelope = {key: value for key, value in data.items() if key in _ENVELOPE_FIELDS}
        if envelope.get("overlay_id") is not None:
            envelope["overlay_id"] = str(envelope["overlay_id"])
        envelope["payload"] = payload
        return envelope

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Alert":
        """Build an alert from a flat backend row."""
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        return {
            **self.payload,
            "id": self.id,
            "overlay_id": self.overlay_id,
            "is_shown": self.is_shown,
        }


__all__ = ["Alert", "AlertId"]
