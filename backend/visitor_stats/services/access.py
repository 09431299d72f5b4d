from __future__ import annotations

import logging
from dataclasses import dataclass

from visitor_stats.config import Settings
from visitor_stats.services.address_resolver import AddressResolver, RequestMetadata
from visitor_stats.services.denylist import DenylistGuard

logger = logging.getLogger(__name__)


@dataclass
class AccessDecision:
    allowed: bool


class AccessService:
    def __init__(
        self,
        settings: Settings,
        resolver: AddressResolver,
        denylist: DenylistGuard,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.denylist = denylist

    def check_access(self, metadata: RequestMetadata) -> AccessDecision:
        try:
            resolved = self.resolver.resolve_visitor(metadata)
            if resolved.is_private:
                # Trusted network callers skip the denylist entirely.
                return AccessDecision(allowed=True)
            denied = self.denylist.is_denied(resolved.raw)
            return AccessDecision(allowed=not denied)
        except Exception:
            logger.exception("Access check failed")
            return AccessDecision(allowed=self.settings.fail_open_on_error)
