"""Map a tenant (and optional provider location id) onto the locations to sync."""

import logging
from typing import List, Optional

from review_sync.models import Location, LocationScope, Provider

logger = logging.getLogger(__name__)


class LocationResolver:
    def __init__(self, registry):
        self._registry = registry

    def resolve(
        self,
        tenant_id: str,
        provider: Provider,
        location_id: Optional[str] = None,
        scope: LocationScope = LocationScope.SINGLE,
    ) -> List[Location]:
        location_id = (location_id or "").strip() or None

        if location_id:
            location = self._registry.get_location(tenant_id, provider, location_id)
            if location is None:
                logger.info("No active %s location %s for tenant %s", provider.value, location_id, tenant_id)
            return [location] if location else []

        if scope == LocationScope.SINGLE:
            location = self._registry.latest_location(tenant_id, provider)
            return [location] if location else []

        return list(self._registry.list_locations(tenant_id, provider))
