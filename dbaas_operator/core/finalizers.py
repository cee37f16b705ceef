"""
Finalizer helpers.

These only mutate the in-memory record; the reconciler shell persists the
finalizer list once, after the kind-specific logic has run.
"""
from dbaas_operator.models.resources import Record


def has_finalizer(record: Record, finalizer: str) -> bool:
    return finalizer in record.metadata.finalizers


def add_finalizer(record: Record, finalizer: str) -> bool:
    """Add ``finalizer`` if missing. Returns True if the record changed."""
    if has_finalizer(record, finalizer):
        return False
    record.metadata.finalizers.append(finalizer)
    return True


def remove_finalizer(record: Record, finalizer: str) -> bool:
    """Remove every occurrence of ``finalizer``. Returns True if the record changed."""
    if not has_finalizer(record, finalizer):
        return False
    record.metadata.finalizers = [f for f in record.metadata.finalizers if f != finalizer]
    return True
