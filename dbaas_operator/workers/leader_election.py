"""
Leader election using Redis for the controller manager.
Ensures only ONE replica runs reconciles at a time.
"""
from typing import Optional

import redis.asyncio as redis

from dbaas_operator.config.logging import get_logger
from dbaas_operator.services import metrics

logger = get_logger(__name__)


class LeaderElection:
    """
    Simple leader election using Redis SET with NX and EX.

    Ensures only ONE replica reconciles even with multiple replicas deployed.
    """

    def __init__(
        self,
        client: redis.Redis,
        instance_id: str,
        lease_duration: int = 30,
        leader_key: str = "dbaas-operator:leader",
    ):
        """
        Initialize leader election.

        Args:
            client: Connected Redis client
            instance_id: Unique instance identifier
            lease_duration: Lease duration in seconds
            leader_key: Redis key holding the current leader's id
        """
        self.client = client
        self.instance_id = instance_id
        self.lease_duration = lease_duration
        self.leader_key = leader_key
        self.is_leader = False

    def _set_leader(self, is_leader: bool) -> None:
        self.is_leader = is_leader
        metrics.leader_status.set(1 if is_leader else 0)

    async def acquire_leadership(self) -> bool:
        """Try to acquire leadership, renewing the lease if already held."""
        acquired = await self.client.set(
            self.leader_key,
            self.instance_id,
            nx=True,
            ex=self.lease_duration,
        )

        if acquired:
            if not self.is_leader:
                logger.info("leadership_acquired", instance_id=self.instance_id)
            self._set_leader(True)
            return True

        current_leader: Optional[str] = await self.client.get(self.leader_key)

        if current_leader == self.instance_id:
            await self.client.expire(self.leader_key, self.lease_duration)
            self._set_leader(True)
            return True

        if self.is_leader:
            logger.info("leadership_lost", instance_id=self.instance_id, current_leader=current_leader)

        self._set_leader(False)
        return False

    async def release_leadership(self) -> None:
        """Release leadership (on shutdown)."""
        if not self.is_leader:
            return

        current_leader = await self.client.get(self.leader_key)

        if current_leader == self.instance_id:
            await self.client.delete(self.leader_key)
            logger.info("leadership_released", instance_id=self.instance_id)

        self._set_leader(False)
