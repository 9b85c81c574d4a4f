"""Resource record model.

Ledger entry for a single resource created (or adopted) during a deployment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ResourceKind(Enum):
    """Kinds of resources in a workspace deployment.

    Declaration order is creation order.
    """

    SECURITY_GROUP = "security-group"
    KEY_PAIR = "key-pair"
    BUCKET = "bucket"
    INSTANCE = "instance"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResourceRecord:
    """Resource record entity.

    Attributes:
        kind: Resource kind
        identifier: Provider identifier (group ID, key name, bucket name, instance ID)
        created_at: When the resource was registered (UTC)
        reused: True if an existing resource was adopted instead of created
    """

    kind: ResourceKind
    identifier: str
    created_at: datetime = field(default_factory=_utcnow)
    reused: bool = False

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "identifier": self.identifier,
            "created_at": self.created_at.isoformat(),
            "reused": self.reused,
        }
