"""
Client data-synchronization layer.

``DataStore`` keeps the signed-in user's datasets, sensors, recent activity
and deployments in memory, mirrors every change to the remote store, and
derives storage metrics from the cached datasets.

Rules the store keeps:

- Every mutating call needs an identity and fails with
  ``NotAuthenticatedError`` before touching the network otherwise.
- Remote errors propagate unchanged. Local state changes only after the
  remote write succeeded.
- Each collection has a single writer lock, so concurrent mutations of a
  collection are applied in call order.
- Updates and deletes only touch records loaded for the current identity.
- Signing out clears all four collections in one step and cancels pending
  delayed transitions. Results of calls that were in flight across the
  sign-out are dropped.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from .app_config import AppSettings
from .entities import (
    Activity,
    Dataset,
    DatasetStatus,
    Deployment,
    DeploymentStatus,
    LogicBlock,
    Sensor,
    SensorStatus,
    parse_logic,
)
from .exceptions import NotAuthenticatedError
from .jobs import TransitionKind, TransitionScheduler
from .sensor_logic import derive_endpoint
from .session import Identity, SessionProvider
from .shared.logger import get_logger
from .shared.sizes import parse_size_gb
from .store_adapter import RemoteStore

logger = get_logger(__name__)

DATASETS = "datasets"
SENSORS = "sensors"
ACTIVITIES = "activities"
DEPLOYMENTS = "deployments"

SENSOR_UPDATE_FIELDS = frozenset({"name", "dataset_id", "logic", "api_endpoint", "status"})
DEPLOYMENT_UPDATE_FIELDS = frozenset({"platform", "api_endpoint", "status"})


def _check_fields(updates: Dict[str, Any], allowed: Iterable[str], entity: str) -> None:
    unknown = sorted(set(updates) - set(allowed))
    if unknown:
        raise ValueError(f"Cannot update {entity} field(s): {', '.join(unknown)}")


class DataStore:
    """Locally cached view of one user's ChainSensor data.

    Args:
        remote: Adapter for the hosted row store
        session: Identity provider; the store scopes every call by its user
        scheduler: Runs the delayed processing/deployment transitions
        settings: Delays, activity limit, storage limit and endpoint base URL
    """

    def __init__(
        self,
        remote: RemoteStore,
        session: SessionProvider,
        scheduler: Optional[TransitionScheduler] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._remote = remote
        self._session = session
        self._scheduler = scheduler or TransitionScheduler()
        self._settings = settings or AppSettings()

        self._datasets: List[Dataset] = []
        self._sensors: List[Sensor] = []
        self._activities: List[Activity] = []
        self._deployments: List[Deployment] = []

        # Acquire in this order when holding several
        self._locks = {
            DATASETS: asyncio.Lock(),
            SENSORS: asyncio.Lock(),
            DEPLOYMENTS: asyncio.Lock(),
            ACTIVITIES: asyncio.Lock(),
        }
        self._generation = 0
        self._owner_id: Optional[str] = None
        self._loading = 0
        self.last_refresh_error: Optional[Exception] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def datasets(self) -> List[Dataset]:
        return list(self._datasets)

    @property
    def sensors(self) -> List[Sensor]:
        return list(self._sensors)

    @property
    def activities(self) -> List[Activity]:
        return list(self._activities)

    @property
    def deployments(self) -> List[Deployment]:
        return list(self._deployments)

    @property
    def scheduler(self) -> TransitionScheduler:
        return self._scheduler

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    @property
    def storage_used(self) -> float:
        """Storage used in GB, recomputed from the cached datasets."""
        return sum(parse_size_gb(d.size) for d in self._datasets)

    @property
    def storage_limit(self) -> float:
        return self._settings.storage_limit_gb

    @property
    def api_base_url(self) -> str:
        return self._settings.api_base_url.rstrip("/")

    @property
    def storage_percentage(self) -> float:
        if self.storage_limit <= 0:
            return 0.0
        return self.storage_used / self.storage_limit * 100

    def get_dataset_by_id(self, dataset_id: str) -> Optional[Dataset]:
        return next((d for d in self._datasets if d.id == dataset_id), None)

    def get_sensor_by_id(self, sensor_id: str) -> Optional[Sensor]:
        return next((s for s in self._sensors if s.id == sensor_id), None)

    def get_deployment_by_id(self, deployment_id: str) -> Optional[Deployment]:
        return next((d for d in self._deployments if d.id == deployment_id), None)

    def metrics(self) -> Dict[str, Any]:
        """Aggregate counts and storage figures for the dashboard."""
        return {
            "datasets": len(self._datasets),
            "sensors": len(self._sensors),
            "active_sensors": sum(1 for s in self._sensors if s.status == SensorStatus.ACTIVE),
            "deployments": len(self._deployments),
            "live_deployments": sum(1 for d in self._deployments if d.status == DeploymentStatus.DEPLOYED),
            "storage_used_gb": self.storage_used,
            "storage_limit_gb": self.storage_limit,
            "storage_percentage": self.storage_percentage,
        }

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _require_identity(self) -> Identity:
        identity = self._session.identity
        if identity is None:
            raise NotAuthenticatedError()
        return identity

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def clear(self) -> None:
        """Drop every cached record and cancel pending transitions."""
        self._generation += 1
        cancelled = self._scheduler.cancel_all()
        self._datasets = []
        self._sensors = []
        self._activities = []
        self._deployments = []
        self._owner_id = None
        self.last_refresh_error = None
        if cancelled:
            logger.info("Cancelled %d pending transitions", cancelled)

    async def on_auth_change(self, identity: Optional[Identity]) -> None:
        """Session listener: load data on sign-in, clear it on sign-out."""
        if identity is None:
            self.clear()
            return
        if self._owner_id != identity.id:
            self.clear()
        await self.refresh()

    async def close(self) -> None:
        """Cancel pending transitions at shutdown."""
        self._scheduler.cancel_all()

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Reload all four collections for the current identity.

        Failures are logged and leave the cached collections untouched; the
        error is kept in ``last_refresh_error``.

        Returns:
            True if the collections were replaced
        """
        identity = self._session.identity
        if identity is None:
            return False

        generation = self._generation
        owner = {"user_id": identity.id}
        self._loading += 1
        try:
            async with AsyncExitStack() as stack:
                for lock in self._locks.values():
                    await stack.enter_async_context(lock)

                dataset_rows, sensor_rows, activity_rows, deployment_rows = await asyncio.gather(
                    self._remote.select(DATASETS, owner, order_by="created_at"),
                    self._remote.select(SENSORS, owner, order_by="created_at"),
                    self._remote.select(
                        ACTIVITIES, owner, order_by="created_at", limit=self._settings.activity_limit
                    ),
                    self._remote.select(DEPLOYMENTS, owner, order_by="created_at"),
                )
                datasets = [Dataset.from_row(r) for r in dataset_rows]
                sensors = [Sensor.from_row(r) for r in sensor_rows]
                activities = [Activity.from_row(r) for r in activity_rows]
                deployments = [Deployment.from_row(r) for r in deployment_rows]

                if not self._is_current(generation) or self._session.identity != identity:
                    logger.warning("Discarding refresh for %s: session changed", identity.id)
                    return False

                self._datasets = datasets
                self._sensors = sensors
                self._activities = activities[: self._settings.activity_limit]
                self._deployments = deployments
                self._owner_id = identity.id
        except Exception as e:
            logger.error("Error loading data for %s: %s", identity.id, e)
            self.last_refresh_error = e
            return False
        finally:
            self._loading -= 1

        self.last_refresh_error = None
        logger.info(
            "Loaded %d datasets, %d sensors, %d deployments for %s",
            len(datasets), len(sensors), len(deployments), identity.id,
        )
        return True

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    async def add_dataset(
        self,
        name: str,
        type: str,
        size: str,
        content: Optional[str] = None,
    ) -> Dataset:
        """Persist a new dataset in ``processing`` and schedule its processing."""
        identity = self._require_identity()
        generation = self._generation

        async with self._locks[DATASETS]:
            row = await self._remote.insert(DATASETS, {
                "user_id": identity.id,
                "name": name,
                "type": type,
                "size": size,
                "content": content,
                "status": DatasetStatus.PROCESSING.value,
            })
            dataset = Dataset.from_row(row)
            if not self._is_current(generation):
                return dataset
            self._datasets.insert(0, dataset)
            self._owner_id = identity.id

        self._scheduler.schedule(
            dataset.id,
            TransitionKind.DATASET_PROCESSING,
            self._settings.processing_delay,
            lambda: self._finish_processing(dataset.id, identity, generation),
        )
        logger.info("Uploaded dataset %s (%s)", dataset.name, dataset.id)

        await self.add_activity(f"Uploaded {name}", "upload", dataset_id=dataset.id)
        return dataset

    async def _finish_processing(self, dataset_id: str, identity: Identity, generation: int) -> None:
        async with self._locks[DATASETS]:
            if not self._is_current(generation) or self.get_dataset_by_id(dataset_id) is None:
                return
            await self._remote.update(
                DATASETS,
                {"status": DatasetStatus.PROCESSED.value},
                {"id": dataset_id, "user_id": identity.id},
            )
            if not self._is_current(generation):
                return
            self._datasets = [
                replace(d, status=DatasetStatus.PROCESSED) if d.id == dataset_id else d
                for d in self._datasets
            ]

    async def delete_dataset(self, dataset_id: str) -> bool:
        """Delete a cached dataset remotely, then locally.

        Returns:
            True if deleted, False if the dataset is not loaded
        """
        identity = self._require_identity()
        dataset = self.get_dataset_by_id(dataset_id)
        if dataset is None:
            return False
        generation = self._generation

        async with self._locks[DATASETS]:
            # A concurrent delete may have won the lock first
            if self.get_dataset_by_id(dataset_id) is None:
                return False
            await self._remote.delete(DATASETS, {"id": dataset_id, "user_id": identity.id})
            self._scheduler.cancel(dataset_id)
            if not self._is_current(generation):
                return True
            self._datasets = [d for d in self._datasets if d.id != dataset_id]

        logger.info("Deleted dataset %s (%s)", dataset.name, dataset_id)
        await self.add_activity(f"Deleted {dataset.name}", "delete")
        return True

    # ------------------------------------------------------------------
    # Sensors
    # ------------------------------------------------------------------

    async def add_sensor(self, name: str, dataset_id: str, logic: Iterable[LogicBlock | Dict[str, Any]]) -> Sensor:
        """Persist an active sensor with its derived endpoint and return it."""
        identity = self._require_identity()
        blocks = parse_logic(list(logic))
        api_endpoint = derive_endpoint(name, self._settings.api_base_url)
        generation = self._generation

        async with self._locks[SENSORS]:
            row = await self._remote.insert(SENSORS, {
                "user_id": identity.id,
                "name": name,
                "dataset_id": dataset_id,
                "logic": [b.to_dict() for b in blocks],
                "api_endpoint": api_endpoint,
                "status": SensorStatus.ACTIVE.value,
            })
            sensor = Sensor.from_row(row)
            if not self._is_current(generation):
                return sensor
            self._sensors.insert(0, sensor)
            self._owner_id = identity.id

        logger.info("Created sensor %s -> %s", sensor.name, sensor.api_endpoint)
        await self.add_activity(f"Created sensor: {name}", "create", sensor_id=sensor.id)
        return sensor

    async def update_sensor(self, sensor_id: str, updates: Dict[str, Any]) -> Optional[Sensor]:
        """Apply a partial update remotely and merge it into the cached sensor.

        Returns:
            The updated sensor, or None if the sensor is not loaded
        """
        identity = self._require_identity()
        _check_fields(updates, SENSOR_UPDATE_FIELDS, "sensor")
        payload = dict(updates)
        if "logic" in payload:
            payload["logic"] = [b.to_dict() for b in parse_logic(payload["logic"])]
        if "status" in payload:
            payload["status"] = SensorStatus(payload["status"]).value

        if self.get_sensor_by_id(sensor_id) is None:
            return None
        if not payload:
            return self.get_sensor_by_id(sensor_id)
        generation = self._generation

        async with self._locks[SENSORS]:
            await self._remote.update(SENSORS, payload, {"id": sensor_id, "user_id": identity.id})
            if self._is_current(generation):
                self._sensors = [s.merged(payload) if s.id == sensor_id else s for s in self._sensors]
        return self.get_sensor_by_id(sensor_id)

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    async def add_activity(
        self,
        action: str,
        type: str,
        dataset_id: Optional[str] = None,
        sensor_id: Optional[str] = None,
    ) -> Activity:
        """Persist an activity and keep only the newest ones locally."""
        identity = self._require_identity()
        generation = self._generation

        async with self._locks[ACTIVITIES]:
            row = await self._remote.insert(ACTIVITIES, {
                "user_id": identity.id,
                "action": action,
                "type": type,
                "dataset_id": dataset_id,
                "sensor_id": sensor_id,
            })
            activity = Activity.from_row(row)
            if self._is_current(generation):
                limit = self._settings.activity_limit
                self._activities = [activity] + self._activities[: limit - 1]
        return activity

    # ------------------------------------------------------------------
    # Deployments
    # ------------------------------------------------------------------

    async def add_deployment(self, sensor_id: str, platform: str, api_endpoint: str) -> Deployment:
        """Persist a deployment in ``deploying`` and schedule its completion."""
        identity = self._require_identity()
        generation = self._generation

        async with self._locks[DEPLOYMENTS]:
            row = await self._remote.insert(DEPLOYMENTS, {
                "user_id": identity.id,
                "sensor_id": sensor_id,
                "platform": platform,
                "api_endpoint": api_endpoint,
                "status": DeploymentStatus.DEPLOYING.value,
            })
            deployment = Deployment.from_row(row)
            if not self._is_current(generation):
                return deployment
            self._deployments.insert(0, deployment)
            self._owner_id = identity.id

        self._scheduler.schedule(
            deployment.id,
            TransitionKind.DEPLOYMENT,
            self._settings.deployment_delay,
            lambda: self._apply_deployment_update(deployment.id, {"status": DeploymentStatus.DEPLOYED.value}),
        )
        logger.info("Deploying sensor %s to %s", sensor_id, platform)
        return deployment

    async def update_deployment(self, deployment_id: str, updates: Dict[str, Any]) -> Optional[Deployment]:
        """Apply a partial update remotely and merge it into the cached deployment.

        Setting ``status`` explicitly cancels a pending deploying -> deployed
        transition, so the explicit status is not overwritten later.

        Returns:
            The updated deployment, or None if the deployment is not loaded
        """
        deployment = await self._apply_deployment_update(deployment_id, updates)
        if deployment is not None and "status" in updates:
            self._scheduler.cancel(deployment_id)
        return deployment

    async def _apply_deployment_update(self, deployment_id: str, updates: Dict[str, Any]) -> Optional[Deployment]:
        identity = self._require_identity()
        _check_fields(updates, DEPLOYMENT_UPDATE_FIELDS, "deployment")
        payload = dict(updates)
        if "status" in payload:
            payload["status"] = DeploymentStatus(payload["status"]).value

        if self.get_deployment_by_id(deployment_id) is None:
            return None
        if not payload:
            return self.get_deployment_by_id(deployment_id)
        generation = self._generation

        async with self._locks[DEPLOYMENTS]:
            await self._remote.update(DEPLOYMENTS, payload, {"id": deployment_id, "user_id": identity.id})
            if self._is_current(generation):
                self._deployments = [
                    d.merged(payload) if d.id == deployment_id else d for d in self._deployments
                ]
        return self.get_deployment_by_id(deployment_id)
