"""
Saga orchestration for multi-step transitions.

The store offers row atomicity only. Transitions that touch several rows
run their writes in order through SagaOrchestrator.run(), which records the
last completed step after every write. A failure after the first write
surfaces as PartialFailureError; calling run() again with the same steps
continues from the failed step.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence
from uuid import UUID

from ..exceptions import PartialFailureError
from .models import SagaStep, TransitionProgress

if TYPE_CHECKING:
    from ..client import AgencyNetwork

logger = logging.getLogger(__name__)


class SagaOrchestrator:
    """
    Runs and tracks transition sagas.

    Example:
        ```python
        progress = await network.sagas.run(
            "invitation",
            invitation.id,
            "accept",
            [
                SagaStep("invitation_status", mark_accepted),
                SagaStep("membership_link", activate_link),
                SagaStep("notification", notify_agent),
            ],
            context={"actor_id": str(user_id)},
        )
        ```
    """

    def __init__(self, network: "AgencyNetwork") -> None:
        """
        Initialize SagaOrchestrator.

        Args:
            network: AgencyNetwork client instance
        """
        self.network = network
        self.client = network.client

    async def get(
        self,
        entity_type: str,
        entity_id: UUID,
        transition: str,
    ) -> Optional[TransitionProgress]:
        """
        Get the stored progress of a transition.

        Returns:
            TransitionProgress or None if the transition never started
        """
        result = await self.client.table("transition_progress").select("*").eq(
            "entity_type", entity_type
        ).eq("entity_id", str(entity_id)).eq("transition", transition).execute()

        if not result.data:
            return None

        return TransitionProgress(**result.data[0])

    async def list_incomplete(self, entity_type: Optional[str] = None) -> List[TransitionProgress]:
        """List transitions that stopped before their last step."""
        query = self.client.table("transition_progress").select("*").eq("completed", False)

        if entity_type:
            query = query.eq("entity_type", entity_type)

        result = await query.order("updated_at", desc=True).execute()
        return [TransitionProgress(**row) for row in result.data]

    async def clear(self, entity_type: str, entity_id: UUID) -> int:
        """
        Drop every progress row of an entity.

        Called before the entity's own row is deleted.

        Returns:
            Number of progress rows removed
        """
        result = await self.client.table("transition_progress").delete().eq(
            "entity_type", entity_type
        ).eq("entity_id", str(entity_id)).execute()

        removed = len(result.data or [])
        if removed:
            logger.debug("Cleared %d %s transitions of %s", removed, entity_type, entity_id)
        return removed

    async def start(
        self,
        entity_type: str,
        entity_id: UUID,
        transition: str,
        steps: Sequence[str],
        context: Optional[Dict[str, Any]] = None,
    ) -> TransitionProgress:
        """Record a fresh progress row for a transition."""
        now = self.network.now().isoformat()
        row = {
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "transition": transition,
            "steps": list(steps),
            "last_completed_step": None,
            "failed_step": None,
            "error": None,
            "context": context or {},
            "completed": False,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.client.table("transition_progress").upsert(
            row, on_conflict="entity_type,entity_id,transition"
        ).execute()

        return TransitionProgress(**(result.data[0] if result.data else row))

    async def _save(self, progress: TransitionProgress, **changes: Any) -> TransitionProgress:
        changes["updated_at"] = self.network.now().isoformat()

        await self.client.table("transition_progress").update(changes).eq(
            "entity_type", progress.entity_type
        ).eq("entity_id", str(progress.entity_id)).eq(
            "transition", progress.transition
        ).execute()

        return progress.model_copy(update=changes)

    async def run(
        self,
        entity_type: str,
        entity_id: UUID,
        transition: str,
        steps: Sequence[SagaStep],
        context: Optional[Dict[str, Any]] = None,
    ) -> TransitionProgress:
        """
        Run the steps of a transition that have not completed yet.

        Args:
            entity_type: "invitation" or "contract"
            entity_id: Entity UUID
            transition: Transition name (e.g. "accept")
            steps: Ordered idempotent steps
            context: Inputs stored for resuming

        Returns:
            The completed TransitionProgress

        Raises:
            PartialFailureError: If a step fails after an earlier one committed
            Exception: The original error if the first step of a fresh run fails
        """
        names = [step.name for step in steps]
        progress = await self.get(entity_type, entity_id, transition)

        if progress is not None and progress.completed:
            return progress
        if progress is None or not progress.started:
            progress = await self.start(entity_type, entity_id, transition, names, context)

        done = progress.completed_steps
        completed: List[str] = list(done)

        if done:
            logger.info(
                "Resuming %s %s of %s after step '%s'",
                entity_type, transition, entity_id, done[-1],
            )

        for step in steps:
            if step.name in done:
                continue

            try:
                await step.action()
            except Exception as exc:
                if not completed:
                    # nothing committed yet: the entity keeps its last status
                    await self._save(progress, failed_step=step.name, error=str(exc))
                    raise

                logger.error(
                    "%s %s of %s failed at step '%s': %s",
                    entity_type, transition, entity_id, step.name, exc,
                )
                await self._save(progress, failed_step=step.name, error=str(exc))
                raise PartialFailureError(
                    transition=transition,
                    entity_id=entity_id,
                    failed_step=step.name,
                    completed_steps=completed,
                    cause=exc,
                    context=progress.context,
                ) from exc

            completed.append(step.name)
            progress = await self._save(
                progress,
                last_completed_step=step.name,
                failed_step=None,
                error=None,
            )

        progress = await self._save(progress, completed=True)
        logger.debug("%s %s of %s completed", entity_type, transition, entity_id)
        return progress
