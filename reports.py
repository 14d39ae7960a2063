"""Per-company summary of postings and application counts."""

from typing import Any, Dict, List

from database import EntityStore


def company_summary(store: EntityStore) -> Dict[str, List[Dict[str, Any]]]:
    summary: Dict[str, List[Dict[str, Any]]] = {}
    for internship in sorted(store.internships(), key=lambda i: (i.company_name.lower(), i.title.lower())):
        summary.setdefault(internship.company_name, []).append(
            {
                "id": internship.id,
                "title": internship.title,
                "status": internship.status.value,
                "visible": internship.visible,
                "applications": len(store.applications_for_internship(internship.id)),
                "confirmed": internship.confirmed_count,
                "slots": internship.slots,
            }
        )
    return summary
