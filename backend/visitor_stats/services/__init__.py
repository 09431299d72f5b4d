from .access import AccessService
from .address_resolver import AddressResolver, RequestMetadata
from .denylist import DenylistGuard
from .recording import RecordService
from .visitor_store import VisitorStore

__all__ = [
    "AccessService",
    "AddressResolver",
    "DenylistGuard",
    "RecordService",
    "RequestMetadata",
    "VisitorStore",
]
