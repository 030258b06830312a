"""Tagged events distributed by the EventBroadcaster."""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class EventKind(str, enum.Enum):
    VESSEL_ADDED = "vessel_added"
    VESSEL_UPDATED = "vessel_updated"
    VESSEL_DELETED = "vessel_deleted"
    GEOFENCE_ALERT = "geofence_alert"
    ALERT_CREATED = "alert_created"
    ZONE_ADDED = "zone_added"


class BroadcastEvent(BaseModel):
    kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> dict[str, Any]:
        """Flattened JSON form sent to websocket observers."""
        data = self.model_dump(mode="json")
        return {"type": data["kind"], **data["payload"]}
