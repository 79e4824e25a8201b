"""
Deployment API routes for the ChainSensor backend.

Deployments are simulated: a new deployment starts in ``deploying`` and the
data store flips it to ``deployed`` after a fixed delay.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from .data_store import DataStore
from .dependencies import get_data_store, get_identity
from .entities import DeploymentStatus
from .session import Identity

router = APIRouter()


PLATFORMS = [
    {
        "id": "aws",
        "name": "AWS Lambda",
        "description": "Serverless deployment with auto-scaling",
        "pricing": "Pay per request",
        "features": ["Auto-scaling", "Global CDN", "High availability"],
    },
    {
        "id": "vercel",
        "name": "Vercel",
        "description": "Edge functions with instant deployment",
        "pricing": "Free tier available",
        "features": ["Edge computing", "Instant deployment", "Analytics"],
    },
    {
        "id": "railway",
        "name": "Railway",
        "description": "Simple cloud deployment platform",
        "pricing": "Usage-based pricing",
        "features": ["Simple setup", "Database included", "Monitoring"],
    },
]
PLATFORM_IDS = {p["id"] for p in PLATFORMS}


class DeploymentCreate(BaseModel):
    sensor_id: str = Field(..., min_length=1)
    platform: str = Field(..., min_length=1)
    api_endpoint: Optional[str] = None


class DeploymentUpdate(BaseModel):
    platform: Optional[str] = None
    api_endpoint: Optional[str] = None
    status: Optional[DeploymentStatus] = None


@router.get("/deployments/platforms")
async def list_platforms():
    return {"platforms": PLATFORMS}


@router.get("/deployments")
async def list_deployments(sensor_id: Optional[str] = None, store: DataStore = Depends(get_data_store)):
    deployments = store.deployments
    if sensor_id:
        deployments = [d for d in deployments if d.sensor_id == sensor_id]
    return {"deployments": [d.to_dict() for d in deployments], "count": len(deployments)}


@router.post("/deployments", status_code=201)
async def create_deployment(
    body: DeploymentCreate,
    store: DataStore = Depends(get_data_store),
    identity: Identity = Depends(get_identity),
):
    """Start a simulated deployment of a sensor to a platform."""
    if body.platform not in PLATFORM_IDS:
        raise HTTPException(status_code=400, detail=f"Unknown platform '{body.platform}'")
    sensor = store.get_sensor_by_id(body.sensor_id)
    if sensor is None:
        raise HTTPException(status_code=404, detail=f"Sensor '{body.sensor_id}' not found")

    endpoint = body.api_endpoint or sensor.api_endpoint or f"{store.api_base_url}/sensor"
    deployment = await store.add_deployment(sensor.id, body.platform, endpoint)
    return deployment.to_dict()


@router.patch("/deployments/{deployment_id}")
async def update_deployment(
    deployment_id: str,
    body: DeploymentUpdate,
    store: DataStore = Depends(get_data_store),
):
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if "platform" in updates and updates["platform"] not in PLATFORM_IDS:
        raise HTTPException(status_code=400, detail=f"Unknown platform '{updates['platform']}'")
    deployment = await store.update_deployment(deployment_id, updates)
    if deployment is None:
        raise HTTPException(status_code=404, detail=f"Deployment '{deployment_id}' not found")
    return deployment.to_dict()
