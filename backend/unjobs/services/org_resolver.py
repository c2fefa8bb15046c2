"""Organization resolution for connector output.

Maps a free-text department or agency name to a canonical organization id:
1. Case-insensitive partial match on code, name, short_name, long_name
2. Lowest id wins when several organizations match
3. Configured default (128, "United Nations") otherwise

Usage:
    from unjobs.services.org_resolver import OrganizationResolver

    resolver = OrganizationResolver()
    org_id = resolver.resolve("World Food Programme")
"""

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from unjobs.config import get_settings
from unjobs.models.base import SyncSessionLocal, session_scope
from unjobs.models.organization import Organization

logger = logging.getLogger(__name__)


class OrganizationResolver:
    """Resolves department text to an organization id. Never raises."""

    def __init__(self, session_factory=SyncSessionLocal, default_id: int | None = None):
        self.session_factory = session_factory
        self.default_id = default_id if default_id is not None else get_settings().default_organization_id
        self._cache: dict[str, int] = {}

    def resolve(self, name: str | None) -> int:
        key = (name or "").strip()
        if not key:
            logger.warning(f"Empty department name, using default organization {self.default_id}")
            return self.default_id

        cache_key = key.lower()
        if cache_key in self._cache:
            return self._cache[cache_key]

        try:
            with session_scope(self.session_factory) as db:
                org_id = db.execute(
                    select(Organization.id)
                    .where(or_(
                        Organization.code.icontains(key, autoescape=True),
                        Organization.name.icontains(key, autoescape=True),
                        Organization.short_name.icontains(key, autoescape=True),
                        Organization.long_name.icontains(key, autoescape=True),
                    ))
                    .order_by(Organization.id)
                    .limit(1)
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            # Not cached: the next call retries the lookup
            logger.error(f"Organization lookup failed for '{key}': {e}")
            return self.default_id

        if org_id is None:
            logger.warning(f"No organization matches '{key}', using default {self.default_id}")
            org_id = self.default_id

        self._cache[cache_key] = org_id
        return org_id

    def clear(self) -> None:
        self._cache.clear()
