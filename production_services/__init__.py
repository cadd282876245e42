"""
production_services -- caller-facing boundary of the stage workflow.

OrderWorkflow owns transactions; IdentityResolver and EvidenceGateway wrap
the external identity provider and object store with bounded timeouts.
"""

from production_services.evidence import EvidenceGateway, EvidenceStore
from production_services.identity import IdentityResolver, ProfileDirectory, ProfileRecord
from production_services.workflow import OrderWorkflow

__all__ = [
    "EvidenceGateway",
    "EvidenceStore",
    "IdentityResolver",
    "ProfileDirectory",
    "ProfileRecord",
    "OrderWorkflow",
]
