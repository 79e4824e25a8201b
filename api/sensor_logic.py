"""Sensor rule-set helpers.

Endpoint derivation, starter templates per dataset type, the manifest
preview shown before saving, and draft validation.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .entities import LogicBlock, LogicBlockType
from .exceptions import ValidationError

DEFAULT_API_BASE_URL = "https://api.chainsensor.com/v1"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

_DEFAULT_CONTENT = {
    LogicBlockType.CONDITION: "value > threshold",
    LogicBlockType.ACTION: "send notification",
    LogicBlockType.TRIGGER: "on data change",
}

# (trigger, condition, action) per dataset type
_TEMPLATES = {
    "health": (
        "on_data_received()",
        "heart_rate > 140 OR blood_pressure > 180",
        'send_alert("Health anomaly detected")',
    ),
    "environment": (
        "on_sensor_reading()",
        "temperature > 35 OR humidity < 20",
        "activate_climate_control()",
    ),
    "movement": (
        "on_motion_detected()",
        "acceleration > 2.5",
        'log_activity("High movement detected")',
    ),
}
_FALLBACK_TEMPLATE = (
    "on_data_change()",
    "value > average + 2*std_dev",
    'send_notification("Anomaly detected")',
)


def slugify(name: str) -> str:
    """Lower-case ``name`` and collapse every non-alphanumeric run to one hyphen."""
    return _NON_ALNUM_RE.sub("-", name.lower()).strip("-")


def derive_endpoint(name: str, base_url: str = DEFAULT_API_BASE_URL) -> str:
    """Public endpoint for a sensor named ``name``."""
    return f"{base_url.rstrip('/')}/{slugify(name)}"


def default_block(block_type: LogicBlockType | str) -> LogicBlock:
    """A fresh editable block with the builder's placeholder content."""
    block_type = LogicBlockType(block_type)
    return LogicBlock(id=uuid.uuid4().hex[:12], type=block_type, content=_DEFAULT_CONTENT[block_type])


def suggest_logic(dataset_type: Optional[str]) -> List[LogicBlock]:
    """Starter trigger/condition/action blocks for a dataset type."""
    trigger, condition, action = _TEMPLATES.get((dataset_type or "").lower(), _FALLBACK_TEMPLATE)
    return [
        LogicBlock(id="1", type=LogicBlockType.TRIGGER, content=trigger),
        LogicBlock(id="2", type=LogicBlockType.CONDITION, content=condition),
        LogicBlock(id="3", type=LogicBlockType.ACTION, content=action),
    ]


def build_manifest(
    name: str,
    dataset_id: str,
    logic: Sequence[LogicBlock],
    created: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Group a rule set into the manifest document shown before saving."""
    def contents(block_type: LogicBlockType) -> List[str]:
        return [b.content for b in logic if b.type == block_type]

    return {
        "sensor_name": name or "Untitled Sensor",
        "dataset": dataset_id,
        "logic": {
            "triggers": contents(LogicBlockType.TRIGGER),
            "conditions": contents(LogicBlockType.CONDITION),
            "actions": contents(LogicBlockType.ACTION),
        },
        "output_format": "api_endpoint",
        "created": (created or datetime.now(timezone.utc)).isoformat(),
    }


def validate_sensor_draft(name: str, dataset_id: str, logic: Sequence[LogicBlock]) -> None:
    """Reject drafts the builder would refuse to save."""
    if not name or not name.strip():
        raise ValidationError("Please enter a sensor name")
    if not slugify(name):
        raise ValidationError("Sensor name must contain at least one letter or digit")
    if not dataset_id:
        raise ValidationError("Please select a dataset")
    if not logic:
        raise ValidationError("Please add some logic blocks")
