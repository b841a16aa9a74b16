"""
Business profile repository (read-only).

Business profiles are maintained by the onboarding flow outside this service;
receipts only need the display details.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from repositories.client import execute, get_client

_BUSINESS_TABLE: str = "sme_details"


@dataclass(frozen=True, slots=True)
class BusinessProfile:
    business_id: str
    business_name: str
    contact_phone: Optional[str] = None
    website: Optional[str] = None


def get_business_profile(business_id: str) -> Optional[BusinessProfile]:
    rows = execute(
        get_client()
        .table(_BUSINESS_TABLE)
        .select("id, business_name, contact_phone, website")
        .eq("id", business_id)
        .limit(1),
        "get business profile",
    )
    if not rows:
        return None

    row = rows[0]
    return BusinessProfile(
        business_id=str(row["id"]),
        business_name=str(row.get("business_name") or ""),
        contact_phone=row.get("contact_phone"),
        website=row.get("website"),
    )


__all__ = ["BusinessProfile", "get_business_profile"]
