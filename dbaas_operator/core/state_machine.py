"""
Provisioning State Machine for owning records

This module implements the finalization protocol's state machine. A record's
provisioning state is derived, never stored: it follows from the record's
finalizers, its deletion timestamp and whether an external id is recorded.

States:
- UNPROVISIONED: Nothing exists remotely, no finalizer
- PROVISIONING: External id recorded but the finalizer is not yet in place
- PROVISIONED: Finalizer present, remote object exists
- DEPROVISIONING: Deletion requested, finalizer still present
- GONE: Deletion requested and finalizer removed; the store may drop the record

Usage:
    >>> from dbaas_operator.core.state_machine import ProvisioningState, ProvisioningStateMachine
    >>>
    >>> ProvisioningStateMachine.can_transition(
    ...     ProvisioningState.DEPROVISIONING,
    ...     ProvisioningState.GONE
    ... )
    True
"""

from enum import Enum
from typing import Dict, Optional, Set

import structlog

from dbaas_operator.exceptions import InvalidTransitionError
from dbaas_operator.models.resources import Record

logger = structlog.get_logger(__name__)


class ProvisioningState(str, Enum):
    """Provisioning lifecycle states"""
    UNPROVISIONED = "unprovisioned"
    PROVISIONING = "provisioning"
    PROVISIONED = "provisioned"
    DEPROVISIONING = "deprovisioning"
    GONE = "gone"


class ProvisioningStateMachine:
    """
    State machine for the finalization protocol.

    Guards finalizer patches so an owning record can never lose its
    finalizer before its remote counterpart is deprovisioned.
    """

    TRANSITIONS: Dict[ProvisioningState, Set[ProvisioningState]] = {
        ProvisioningState.UNPROVISIONED: {
            ProvisioningState.PROVISIONING,    # Cluster resolved, not created yet
            ProvisioningState.PROVISIONED,     # Created or adopted in one reconcile
            ProvisioningState.GONE,            # Deleted before anything was created
        },
        ProvisioningState.PROVISIONING: {
            ProvisioningState.PROVISIONED,     # Create or adopt succeeded
            ProvisioningState.DEPROVISIONING,  # Deletion requested
            ProvisioningState.GONE,            # Deleted before the finalizer was added
        },
        ProvisioningState.PROVISIONED: {
            ProvisioningState.DEPROVISIONING,  # Deletion requested
            ProvisioningState.GONE,            # Deletion requested and completed
        },
        ProvisioningState.DEPROVISIONING: {
            ProvisioningState.GONE,            # Remote object confirmed deleted
        },
        ProvisioningState.GONE: set(),         # Terminal state, no transitions
    }

    @classmethod
    def state_of(cls, record: Record, finalizer: str) -> ProvisioningState:
        """
        Derive the provisioning state of a record.

        Args:
            record: Record to inspect
            finalizer: Finalizer name owned by the operator

        Returns:
            Current provisioning state
        """
        has_finalizer = finalizer in record.metadata.finalizers
        if record.in_deletion:
            return ProvisioningState.DEPROVISIONING if has_finalizer else ProvisioningState.GONE
        if has_finalizer:
            return ProvisioningState.PROVISIONED
        if record.external_id:
            return ProvisioningState.PROVISIONING
        return ProvisioningState.UNPROVISIONED

    @classmethod
    def can_transition(
        cls,
        from_state: ProvisioningState,
        to_state: ProvisioningState
    ) -> bool:
        """
        Check if state transition is valid.

        Staying in the same state is always allowed.

        Example:
            >>> ProvisioningStateMachine.can_transition(
            ...     ProvisioningState.PROVISIONED,
            ...     ProvisioningState.UNPROVISIONED
            ... )
            False
        """
        if from_state == to_state:
            return True
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def validate_transition(
        cls,
        from_state: ProvisioningState,
        to_state: ProvisioningState,
        record: Optional[str] = None
    ) -> None:
        """
        Validate state transition and raise exception if invalid.

        Args:
            from_state: State derived from the record as loaded
            to_state: State derived from the record as it would be persisted
            record: Optional record key for logging

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        if not cls.can_transition(from_state, to_state):
            logger.error(
                "invalid_state_transition",
                record=record,
                from_state=from_state.value,
                to_state=to_state.value,
                allowed_states=[s.value for s in cls.TRANSITIONS.get(from_state, set())]
            )
            raise InvalidTransitionError(from_state.value, to_state.value, record)

        if from_state != to_state:
            logger.info(
                "state_transition_validated",
                record=record,
                from_state=from_state.value,
                to_state=to_state.value
            )
