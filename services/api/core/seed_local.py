"""
Seed script for local testing of the Data Request Workspace.
Creates one sample request with two department submissions.

Usage:
    python -m core.seed_local
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.factory import build_storage_adapter
from core.errors import NotFound
from models import Request
from models.services import RequestService
from settings import get_settings

SAMPLE_ID = "REQ-001"
SAMPLE_TITLE = "Meter inventory - South Zone"

SAMPLE_REQUEST = {
    "id": SAMPLE_ID,
    "title": SAMPLE_TITLE,
    "format": "Excel",
    "departments": ["Distribution", "Maintenance"],
    "emails": ["dist@example.com", "maint@example.com"],
    "deadline": "2025-01-15",
    "emailSubject": f"Data request: {SAMPLE_TITLE}",
    "emailBody": (
        "Hi team,\n\n"
        f"Please update the sheet for {SAMPLE_TITLE}.\n"
        "Deadline: 2025-01-15\n"
        "Link: {{link}}\n\n"
        "Thanks,\nData Office"
    ),
    "reminders": {"enabled": True, "frequency": "weekly"},
    "instructions": "Share all active meters with health status.",
    "columns": ["Asset ID", "Location", "Status", "Remarks"],
}

SAMPLE_SUBMISSIONS = [
    {
        "department": "Distribution",
        "rows": [
            {"Asset ID": "MTR-001", "Location": "Mumbai", "Status": "Active", "Remarks": ""},
            {"Asset ID": "MTR-002", "Location": "Pune", "Status": "Inactive", "Remarks": "Under repair"},
        ],
        "completed": True,
    },
    {
        "department": "Maintenance",
        "rows": [
            {"Asset ID": "MTR-003", "Location": "Navi Mumbai", "Status": "Active", "Remarks": ""},
        ],
        "completed": False,
    },
]


def seed(service: RequestService) -> Request:
    """Insert the sample request unless it already exists."""
    try:
        existing = service.get_request(SAMPLE_ID)
        print(f"⏭️  {SAMPLE_ID} already present, nothing to do")
        return existing
    except NotFound:
        pass

    print(f"📄 Creating {SAMPLE_ID} ({SAMPLE_TITLE})...")
    request = service.create_request(SAMPLE_REQUEST)
    for sub in SAMPLE_SUBMISSIONS:
        request = service.add_submission(SAMPLE_ID, sub)
        print(f"   ✓ {sub['department']}: {len(sub['rows'])} rows")
    return request


def main():
    print("🌱 Seeding Data Request Workspace...")

    settings = get_settings()
    print(f"📦 Using {settings.storage_backend} backend")

    service = RequestService(build_storage_adapter(settings))
    request = seed(service)

    print("\n✅ Seeding complete!")
    print(f"   Request: {request.id}")
    print(f"   Departments: {', '.join(request.departments)}")
    print(f"   Submissions: {len(request.submissions)}")


if __name__ == "__main__":
    main()
