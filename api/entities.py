"""
Entity model for the ChainSensor synchronization layer.

Rows come back from the remote store as plain dicts. Each entity knows how to
build itself from such a row (ignoring owner and bookkeeping columns) and how
to serialize itself for the HTTP layer.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class DatasetStatus(str, Enum):
    """Processing lifecycle of an uploaded dataset."""

    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class SensorStatus(str, Enum):
    """Whether a sensor is serving its endpoint."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class DeploymentStatus(str, Enum):
    """Lifecycle of a simulated deployment."""

    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    ERROR = "error"


class LogicBlockType(str, Enum):
    """Kind of statement inside a sensor rule set."""

    CONDITION = "condition"
    ACTION = "action"
    TRIGGER = "trigger"


@dataclass(frozen=True)
class LogicBlock:
    """One condition, action or trigger statement of a sensor."""

    id: str
    type: LogicBlockType
    content: str
    editable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "editable": self.editable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogicBlock":
        return cls(
            id=str(data.get("id", "")),
            type=LogicBlockType(data.get("type", LogicBlockType.CONDITION.value)),
            content=data.get("content", ""),
            editable=bool(data.get("editable", True)),
        )


def parse_logic(value: Any) -> List[LogicBlock]:
    """Decode a rule set from a row column, a request body or LogicBlocks."""
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value) if value.strip() else []
    return [b if isinstance(b, LogicBlock) else LogicBlock.from_dict(b) for b in value]


@dataclass(frozen=True)
class Dataset:
    """A named, typed unit of uploaded content."""

    id: str
    name: str
    type: str
    size: str
    status: DatasetStatus
    created_at: str
    content: Optional[str] = None

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        if not include_content:
            data.pop("content")
        return data

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Dataset":
        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            type=row.get("type", ""),
            size=row.get("size", ""),
            status=DatasetStatus(row.get("status", DatasetStatus.PROCESSING.value)),
            created_at=row.get("created_at", ""),
            content=row.get("content"),
        )


@dataclass(frozen=True)
class Sensor:
    """A rule set bound to one dataset, exposable as an endpoint."""

    id: str
    name: str
    dataset_id: str
    status: SensorStatus
    created_at: str
    logic: List[LogicBlock] = field(default_factory=list)
    api_endpoint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "dataset_id": self.dataset_id,
            "logic": [block.to_dict() for block in self.logic],
            "api_endpoint": self.api_endpoint,
            "status": self.status.value,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Sensor":
        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            dataset_id=str(row.get("dataset_id") or ""),
            status=SensorStatus(row.get("status", SensorStatus.ACTIVE.value)),
            created_at=row.get("created_at", ""),
            logic=parse_logic(row.get("logic")),
            api_endpoint=row.get("api_endpoint"),
        )

    def merged(self, fields: Dict[str, Any]) -> "Sensor":
        """Return a copy with a partial update applied."""
        updates = dict(fields)
        if "logic" in updates:
            updates["logic"] = parse_logic(updates["logic"])
        if "status" in updates:
            updates["status"] = SensorStatus(updates["status"])
        return replace(self, **updates)


@dataclass(frozen=True)
class Activity:
    """Audit-log entry describing a mutation."""

    id: str
    action: str
    type: str
    created_at: str
    dataset_id: Optional[str] = None
    sensor_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Activity":
        return cls(
            id=str(row["id"]),
            action=row.get("action", ""),
            type=row.get("type", ""),
            created_at=row.get("created_at", ""),
            dataset_id=row.get("dataset_id"),
            sensor_id=row.get("sensor_id"),
        )


@dataclass(frozen=True)
class Deployment:
    """A simulated publication of a sensor to a platform."""

    id: str
    sensor_id: str
    platform: str
    api_endpoint: str
    status: DeploymentStatus
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Deployment":
        return cls(
            id=str(row["id"]),
            sensor_id=str(row.get("sensor_id") or ""),
            platform=row.get("platform", ""),
            api_endpoint=row.get("api_endpoint", ""),
            status=DeploymentStatus(row.get("status", DeploymentStatus.DEPLOYING.value)),
            created_at=row.get("created_at", ""),
        )

    def merged(self, fields: Dict[str, Any]) -> "Deployment":
        """Return a copy with a partial update applied."""
        updates = dict(fields)
        if "status" in updates:
            updates["status"] = DeploymentStatus(updates["status"])
        return replace(self, **updates)
