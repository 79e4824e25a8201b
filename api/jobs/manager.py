"""
Scheduler for delayed status transitions.

Uploaded datasets and new deployments change status after a fixed delay
(processing -> processed, deploying -> deployed). Each pending transition is
an asyncio task keyed by the id of the entity it updates, so deleting the
entity or ending the session can cancel it before it fires.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..shared.logger import get_logger

logger = get_logger(__name__)


class TransitionStatus(str, Enum):
    """Status of a scheduled transition."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransitionKind(str, Enum):
    """What a transition does to its entity."""

    DATASET_PROCESSING = "dataset_processing"
    DEPLOYMENT = "deployment"


@dataclass
class Transition:
    """A delayed status change for one entity."""

    entity_id: str
    kind: TransitionKind
    delay: float
    status: TransitionStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert transition to dictionary for JSON serialization."""
        return {
            "entity_id": self.entity_id,
            "kind": self.kind.value,
            "delay": self.delay,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }

    @property
    def is_finished(self) -> bool:
        return self.status in (TransitionStatus.COMPLETED, TransitionStatus.FAILED, TransitionStatus.CANCELLED)


class TransitionScheduler:
    """
    Runs delayed transitions on the event loop.

    At most one transition is pending per entity id; scheduling another one
    for the same id cancels the first. Failures are logged and kept on the
    transition record, they are never raised to whoever scheduled the task.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}
        self._transitions: Dict[str, Transition] = {}
        self._history: List[Transition] = []
        self._history_limit = 100

    def schedule(
        self,
        entity_id: str,
        kind: TransitionKind,
        delay: float,
        callback: Callable[[], Awaitable[Any]],
    ) -> Transition:
        """Schedule ``callback`` to run after ``delay`` seconds.

        Args:
            entity_id: Id of the entity the callback updates
            kind: Transition kind, for reporting
            delay: Delay in seconds
            callback: Coroutine function performing the update

        Returns:
            The pending Transition record
        """
        self.cancel(entity_id)

        transition = Transition(
            entity_id=entity_id,
            kind=kind,
            delay=delay,
            status=TransitionStatus.PENDING,
            created_at=datetime.now(),
        )
        self._transitions[entity_id] = transition
        task = asyncio.get_running_loop().create_task(self._run(transition, callback))
        self._tasks[entity_id] = task
        return transition

    async def _run(self, transition: Transition, callback: Callable[[], Awaitable[Any]]) -> None:
        try:
            await asyncio.sleep(transition.delay)
            transition.status = TransitionStatus.RUNNING
            transition.started_at = datetime.now()
            await callback()
            transition.status = TransitionStatus.COMPLETED
        except asyncio.CancelledError:
            transition.status = TransitionStatus.CANCELLED
            raise
        except Exception as e:
            transition.status = TransitionStatus.FAILED
            transition.error = str(e)
            logger.error("%s transition failed for %s: %s", transition.kind.value, transition.entity_id, e)
        finally:
            transition.completed_at = datetime.now()
            self._finish(transition)

    def _finish(self, transition: Transition) -> None:
        if self._transitions.get(transition.entity_id) is transition:
            del self._transitions[transition.entity_id]
            self._tasks.pop(transition.entity_id, None)
        self._history.append(transition)
        del self._history[:-self._history_limit]

    def get(self, entity_id: str) -> Optional[Transition]:
        """Get the pending transition for an entity, if any."""
        return self._transitions.get(entity_id)

    def pending(self) -> List[Transition]:
        """List pending or running transitions, oldest first."""
        return sorted(self._transitions.values(), key=lambda t: t.created_at)

    def history(self, limit: int = 50) -> List[Transition]:
        """List finished transitions, newest first."""
        return list(reversed(self._history))[:limit]

    def cancel(self, entity_id: str) -> bool:
        """Cancel the pending transition for an entity.

        Returns:
            True if a transition was cancelled, False if none was pending
        """
        task = self._tasks.pop(entity_id, None)
        transition = self._transitions.pop(entity_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        if transition is not None and transition.status == TransitionStatus.PENDING:
            transition.status = TransitionStatus.CANCELLED
        logger.debug("Cancelled transition for %s", entity_id)
        return True

    def cancel_all(self) -> int:
        """Cancel every pending transition.

        Returns:
            Number of transitions cancelled
        """
        return sum(1 for entity_id in list(self._tasks) if self.cancel(entity_id))

    async def drain(self) -> None:
        """Wait until every currently scheduled transition has finished."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
