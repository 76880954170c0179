"""
Audit Trail Module

Append-only, hash-chained log of loan lifecycle events. Each event stores the
SHA-256 hash of its predecessor, so altering or removing a stored event breaks
the chain and is reported by verify_integrity().
"""

import hashlib
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .storage import StorageInterface, StorageRecord


class AuditEventType(Enum):
    """Types of audit events"""
    LOAN_CREATED = "loan_created"
    LOAN_REPAYMENT_RECEIVED = "loan_repayment_received"
    LOAN_REPAID = "loan_repaid"


@dataclass
class AuditEvent(StorageRecord):
    """Immutable audit event with hash chaining for tamper detection"""
    event_type: AuditEventType
    entity_type: str
    entity_id: str
    sequence: int        # Position in the chain, starting at 1
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def calculate_hash(self) -> str:
        """SHA-256 over every field except current_hash"""
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'sequence': self.sequence,
            'previous_hash': self.previous_hash,
            'metadata': self.metadata
        }
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'), default=str)
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        data['event_type'] = AuditEventType(data['event_type'])
        return super().from_dict(data)


class AuditTrail:
    """Hash-chained audit trail stored alongside the loan records"""

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events"):
        self.storage = storage
        self.table_name = table_name

    def _last_event(self) -> Optional[Dict[str, Any]]:
        events = self.storage.find(self.table_name, {}, order_by='sequence')
        return events[-1] if events else None

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """
        Append an event to the chain

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited, e.g. "loan"
            entity_id: ID of the entity
            metadata: JSON-serializable event details

        Returns:
            Created AuditEvent
        """
        with self.storage.atomic():
            last = self._last_event()
            now = datetime.now(timezone.utc)

            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                sequence=last['sequence'] + 1 if last else 1,
                previous_hash=last['current_hash'] if last else "",
                current_hash="",
                # Round-trip so the hash covers exactly what gets stored
                metadata=json.loads(json.dumps(metadata or {}, default=str))
            )
            event.current_hash = event.calculate_hash()

            self.storage.save(self.table_name, event.id, event.to_dict())
            return event

    def get_events_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """All events for one entity, in chain order"""
        events_data = self.storage.find(
            self.table_name,
            {'entity_type': entity_type, 'entity_id': entity_id},
            order_by='sequence'
        )
        return [AuditEvent.from_dict(data) for data in events_data]

    def count_events(self) -> int:
        return self.storage.count(self.table_name)

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify every event hash and the links between consecutive events

        Returns:
            Dictionary with 'valid', 'total_events', 'hash_errors' and
            'chain_breaks'
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        events = [
            AuditEvent.from_dict(data)
            for data in self.storage.find(self.table_name, {}, order_by='sequence')
        ]
        result['total_events'] = len(events)

        previous_hash = ""
        for position, event in enumerate(events, start=1):
            if not event.verify_hash():
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash or event.sequence != position:
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash

        result['valid'] = not result['hash_errors'] and not result['chain_breaks']
        return result
