"""Business services."""

from animagenius.services.admin import AdminService
from animagenius.services.billing import BillingService
from animagenius.services.pipeline import PipelineService
from animagenius.services.store import PipelineStore
from animagenius.services.usage import UsageMeter

__all__ = [
    "AdminService",
    "BillingService",
    "PipelineService",
    "PipelineStore",
    "UsageMeter",
]
