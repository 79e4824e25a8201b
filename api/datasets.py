"""
Datasets API routes for the ChainSensor backend.

Uploading, listing, viewing and deleting the signed-in user's datasets.
All persistence goes through the DataStore; routes only shape requests and
responses.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from .data_store import DataStore
from .dependencies import get_data_store
from .shared.sizes import detect_dataset_type, format_upload_size

router = APIRouter()

# Characters returned by the content viewer
PREVIEW_LIMIT = 2000


# ============= Request Models =============


class DatasetCreate(BaseModel):
    """A dataset whose size string is already known."""
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    size: str = Field(..., min_length=1)
    content: Optional[str] = None


class DatasetUpload(BaseModel):
    """A file read as text by the client."""
    filename: str = Field(..., min_length=1)
    content: str = ""
    byte_size: Optional[int] = Field(default=None, ge=0)
    type: Optional[str] = None


def _storage_summary(store: DataStore) -> dict:
    return {
        "used_gb": store.storage_used,
        "limit_gb": store.storage_limit,
        "percentage": store.storage_percentage,
    }


# ============= Routes =============


@router.get("/datasets")
async def list_datasets(
    include_content: bool = Query(default=False),
    store: DataStore = Depends(get_data_store),
):
    """List cached datasets, newest first, with storage usage."""
    datasets = [d.to_dict(include_content=include_content) for d in store.datasets]
    return {
        "datasets": datasets,
        "count": len(datasets),
        "storage": _storage_summary(store),
    }


@router.post("/datasets", status_code=201)
async def create_dataset(body: DatasetCreate, store: DataStore = Depends(get_data_store)):
    dataset = await store.add_dataset(body.name, body.type, body.size, body.content)
    return dataset.to_dict()


@router.post("/datasets/upload", status_code=201)
async def upload_dataset(body: DatasetUpload, store: DataStore = Depends(get_data_store)):
    """Create a dataset from an uploaded file, deriving its type and size."""
    byte_size = body.byte_size if body.byte_size is not None else len(body.content.encode("utf-8"))
    dataset = await store.add_dataset(
        name=body.filename,
        type=body.type or detect_dataset_type(body.filename),
        size=format_upload_size(byte_size),
        content=body.content,
    )
    return dataset.to_dict(include_content=False)


@router.get("/datasets/{dataset_id}")
async def get_dataset(dataset_id: str, store: DataStore = Depends(get_data_store)):
    """Get one dataset with a truncated content preview."""
    dataset = store.get_dataset_by_id(dataset_id)
    if dataset is None:
        raise HTTPException(status_code=404, detail=f"Dataset '{dataset_id}' not found")

    result = dataset.to_dict(include_content=False)
    content = dataset.content or ""
    result["preview"] = content[:PREVIEW_LIMIT]
    result["truncated"] = len(content) > PREVIEW_LIMIT
    return result


@router.delete("/datasets/{dataset_id}")
async def delete_dataset(dataset_id: str, store: DataStore = Depends(get_data_store)):
    deleted = await store.delete_dataset(dataset_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Dataset '{dataset_id}' not found")
    return {"success": True, "id": dataset_id}
