"""
Detector de cambios entre dos snapshots de una tabla.

La igualdad de timestamps es estricta sobre el reloj del upstream: no hay
tolerancia a clock skew, el upstream es la autoridad.
"""
from typing import Optional

from portfolio_sync.domain.entities.records import ChangeSet, Snapshot


def detect(previous: Optional[Snapshot], fresh: Snapshot) -> ChangeSet:
    """
    Clasifica cada id como nuevo / cambiado / borrado / sin cambios.

    Args:
        previous: snapshot de la corrida anterior (None en la primera corrida)
        fresh: snapshot recién traído

    Returns:
        ChangeSet: sin snapshot previo, todo el snapshot fresco queda como `added`
    """
    before = previous.entries if previous is not None else {}
    added, changed, unchanged = set(), set(), set()

    for record_id, timestamp in fresh.entries.items():
        if record_id not in before:
            added.add(record_id)
        elif before[record_id] != timestamp:
            changed.add(record_id)
        else:
            unchanged.add(record_id)

    deleted = {record_id for record_id in before if record_id not in fresh.entries}

    return ChangeSet(
        table=fresh.table,
        added=frozenset(added),
        changed=frozenset(changed),
        deleted=frozenset(deleted),
        unchanged=frozenset(unchanged),
    )
