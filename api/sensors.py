"""
Sensor API routes for the ChainSensor backend.

Covers the sensor builder: starter templates, manifest preview, saving a
sensor and partial updates (rename, re-bind, edit logic, activate/deactivate).
"""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from .data_store import DataStore
from .dependencies import get_data_store, get_identity
from .entities import LogicBlockType, SensorStatus, parse_logic
from .sensor_logic import build_manifest, default_block, suggest_logic, validate_sensor_draft
from .session import Identity

router = APIRouter()


# ============= Request Models =============


class LogicBlockModel(BaseModel):
    id: str
    type: Literal["condition", "action", "trigger"]
    content: str
    editable: bool = True


class SensorDraft(BaseModel):
    name: str = ""
    dataset_id: str = ""
    logic: List[LogicBlockModel] = Field(default_factory=list)


class SensorUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    dataset_id: Optional[str] = None
    logic: Optional[List[LogicBlockModel]] = None
    api_endpoint: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None


class NewBlockRequest(BaseModel):
    type: Literal["condition", "action", "trigger"]


def _blocks(draft: SensorDraft):
    return parse_logic([b.model_dump() for b in draft.logic])


# ============= Builder Helpers =============


@router.get("/sensors/templates/{dataset_type}")
async def get_logic_template(dataset_type: str):
    """Starter trigger/condition/action blocks for a dataset type."""
    return {
        "dataset_type": dataset_type,
        "logic": [b.to_dict() for b in suggest_logic(dataset_type)],
    }


@router.post("/sensors/blocks")
async def new_logic_block(body: NewBlockRequest):
    """A new block with the builder's placeholder content."""
    return default_block(LogicBlockType(body.type)).to_dict()


@router.post("/sensors/preview")
async def preview_sensor(body: SensorDraft):
    """Manifest document for a draft, without saving it."""
    return build_manifest(body.name, body.dataset_id, _blocks(body))


# ============= Sensors =============


@router.get("/sensors")
async def list_sensors(status: Optional[SensorStatus] = None, store: DataStore = Depends(get_data_store)):
    sensors = store.sensors
    if status:
        sensors = [s for s in sensors if s.status == status]
    return {"sensors": [s.to_dict() for s in sensors], "count": len(sensors)}


@router.post("/sensors", status_code=201)
async def create_sensor(
    body: SensorDraft,
    store: DataStore = Depends(get_data_store),
    identity: Identity = Depends(get_identity),
):
    """Save a sensor built in the builder."""
    blocks = _blocks(body)
    validate_sensor_draft(body.name, body.dataset_id, blocks)
    if store.get_dataset_by_id(body.dataset_id) is None:
        raise HTTPException(status_code=404, detail=f"Dataset '{body.dataset_id}' not found")
    sensor = await store.add_sensor(body.name.strip(), body.dataset_id, blocks)
    return sensor.to_dict()


@router.get("/sensors/{sensor_id}")
async def get_sensor(sensor_id: str, store: DataStore = Depends(get_data_store)):
    sensor = store.get_sensor_by_id(sensor_id)
    if sensor is None:
        raise HTTPException(status_code=404, detail=f"Sensor '{sensor_id}' not found")
    return sensor.to_dict()


@router.patch("/sensors/{sensor_id}")
async def update_sensor(sensor_id: str, body: SensorUpdate, store: DataStore = Depends(get_data_store)):
    """Partially update a sensor; only the fields sent are touched."""
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    sensor = await store.update_sensor(sensor_id, updates)
    if sensor is None:
        raise HTTPException(status_code=404, detail=f"Sensor '{sensor_id}' not found")
    return sensor.to_dict()
