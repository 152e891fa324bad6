"""
Value mapping between the VitalVida and Role systems.
"""

from typing import List, Optional, Tuple

DEFAULT_ZONE = "Lagos"

# Checked in order, first keyword found in the location wins
ZONE_KEYWORDS: List[Tuple[str, str]] = [
    ("Lagos", "Lagos"),
    ("Victoria Island", "Lagos"),
    ("Ikeja", "Lagos"),
    ("Lekki", "Lagos"),
    ("Surulere", "Lagos"),
    ("Abuja", "Abuja"),
    ("FCT", "Abuja"),
    ("Kano", "Kano"),
    ("Port Harcourt", "Port Harcourt"),
    ("Rivers", "Port Harcourt"),
]

ROLE_STATUS_MAP = {
    "Active": "active",
    "Inactive": "inactive",
    "On Delivery": "on_delivery",
    "Break": "on_break",
    "Suspended": "suspended",
    "Training Required": "training",
}

BIN_STATUS_MAP = {
    "In Stock": "active",
    "Low Stock": "warning",
    "Out of Stock": "critical",
    "Discontinued": "inactive",
}

TRAINING_KEYWORDS: List[Tuple[str, str]] = [
    ("photo", "photo_compliance_training"),
    ("delivery", "delivery_excellence_training"),
    ("performance", "performance_improvement_training"),
]


def map_location_to_zone(location: Optional[str]) -> str:
    """Map a free-text location to its zone, defaulting to Lagos."""
    if not location:
        return DEFAULT_ZONE

    lowered = location.lower()
    for keyword, zone in ZONE_KEYWORDS:
        if keyword.lower() in lowered:
            return zone

    return DEFAULT_ZONE


def map_status_to_role(status: Optional[str]) -> str:
    return ROLE_STATUS_MAP.get(status, "active")


def map_product_status_to_bin_status(status: Optional[str]) -> str:
    return BIN_STATUS_MAP.get(status, "active")


def determine_training_type(reason: Optional[str]) -> str:
    lowered = (reason or "").lower()
    for keyword, training_type in TRAINING_KEYWORDS:
        if keyword in lowered:
            return training_type
    return "general_compliance_training"


def clamp_score(score: float) -> int:
    """Compliance scores live in [0, 100]."""
    return int(max(0, min(100, score)))
