"""Seed the organizations table with UN system agencies.

Connectors resolve free-text department names against these rows; id 128
("United Nations") is the fallback for anything that does not match.
Existing ids are updated in place, so the script is safe to re-run.

Usage:
    python scripts/seed_organizations.py
    docker compose exec backend python /app/scripts/seed_organizations.py
"""

import sys
from pathlib import Path

# Add backend to path when running as script
backend_dir = Path(__file__).resolve().parent.parent / "backend"
if backend_dir.exists():
    sys.path.insert(0, str(backend_dir))

from unjobs.config import get_settings
from unjobs.models.base import Base, SyncSessionLocal, engine, session_scope
from unjobs.models.organization import Organization
from unjobs.models import job_record, run_status  # noqa: F401

settings = get_settings()

UN_ORGANIZATIONS = [
    {"id": 1, "code": "UNHCR", "short_name": "UNHCR", "name": "UN Refugee Agency",
     "long_name": "Office of the United Nations High Commissioner for Refugees"},
    {"id": 2, "code": "UNICEF", "short_name": "UNICEF", "name": "UNICEF",
     "long_name": "United Nations Children's Fund"},
    {"id": 3, "code": "WFP", "short_name": "WFP", "name": "World Food Programme",
     "long_name": "United Nations World Food Programme"},
    {"id": 4, "code": "UNFPA", "short_name": "UNFPA", "name": "UN Population Fund",
     "long_name": "United Nations Population Fund"},
    {"id": 5, "code": "WB", "short_name": "WBG", "name": "World Bank",
     "long_name": "World Bank Group"},
    {"id": 6, "code": "UNDP", "short_name": "UNDP", "name": "UN Development Programme",
     "long_name": "United Nations Development Programme"},
    {"id": 7, "code": "UNOPS", "short_name": "UNOPS", "name": "UN Office for Project Services",
     "long_name": "United Nations Office for Project Services"},
    {"id": 8, "code": "UNESCO", "short_name": "UNESCO", "name": "UNESCO",
     "long_name": "United Nations Educational, Scientific and Cultural Organization"},
    {"id": 9, "code": "IMF", "short_name": "IMF", "name": "International Monetary Fund",
     "long_name": "International Monetary Fund"},
    {"id": 10, "code": "OCHA", "short_name": "OCHA", "name": "Office for the Coordination of Humanitarian Affairs",
     "long_name": "United Nations Office for the Coordination of Humanitarian Affairs"},
    {"id": 11, "code": "OHCHR", "short_name": "OHCHR", "name": "Office of the High Commissioner for Human Rights",
     "long_name": "Office of the United Nations High Commissioner for Human Rights"},
    {"id": 12, "code": "UNEP", "short_name": "UNEP", "name": "UN Environment Programme",
     "long_name": "United Nations Environment Programme"},
    {"id": settings.default_organization_id, "code": "UN", "short_name": "UN", "name": "United Nations",
     "long_name": "United Nations Secretariat"},
]


def seed_organizations() -> dict:
    Base.metadata.create_all(engine)
    created = updated = 0

    with session_scope(SyncSessionLocal) as db:
        for data in UN_ORGANIZATIONS:
            org = db.get(Organization, data["id"])
            if org:
                for key, value in data.items():
                    setattr(org, key, value)
                updated += 1
            else:
                db.add(Organization(**data))
                created += 1

    return {"created": created, "updated": updated}


if __name__ == "__main__":
    print("=== Seeding UN organizations ===")
    result = seed_organizations()
    print(f"  Created: {result['created']}")
    print(f"  Updated: {result['updated']}")
    print(f"  Default organization id: {settings.default_organization_id}")
