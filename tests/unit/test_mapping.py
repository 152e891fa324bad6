"""
Tests for VitalVida -> Role value mapping.
"""

import pytest

from vitalvida.services.mapping import (
    clamp_score,
    determine_training_type,
    map_location_to_zone,
    map_product_status_to_bin_status,
    map_status_to_role,
)


@pytest.mark.parametrize(
    "location, zone",
    [
        ("Ikeja, Lagos", "Lagos"),
        ("Plot 4, Lekki Phase 1", "Lagos"),
        ("Victoria Island", "Lagos"),
        ("Garki, Abuja", "Abuja"),
        ("FCT", "Abuja"),
        ("Sabon Gari, Kano", "Kano"),
        ("Rumuokoro, Port Harcourt", "Port Harcourt"),
        ("Rivers State", "Port Harcourt"),
        ("ikeja", "Lagos"),
    ],
)
def test_location_keywords_map_to_zone(location, zone):
    assert map_location_to_zone(location) == zone


def test_unknown_or_missing_location_defaults_to_lagos():
    assert map_location_to_zone("Enugu") == "Lagos"
    assert map_location_to_zone("") == "Lagos"
    assert map_location_to_zone(None) == "Lagos"


def test_status_mapping():
    assert map_status_to_role("On Delivery") == "on_delivery"
    assert map_status_to_role("Break") == "on_break"
    assert map_status_to_role("Training Required") == "training"
    assert map_status_to_role("Suspended") == "suspended"
    assert map_status_to_role("Something Else") == "active"


def test_product_status_mapping():
    assert map_product_status_to_bin_status("Low Stock") == "warning"
    assert map_product_status_to_bin_status("Out of Stock") == "critical"
    assert map_product_status_to_bin_status("Discontinued") == "inactive"
    assert map_product_status_to_bin_status(None) == "active"


def test_training_type_from_reason():
    assert determine_training_type("Missing Photo proof") == "photo_compliance_training"
    assert determine_training_type("Late delivery twice") == "delivery_excellence_training"
    assert determine_training_type("Low performance") == "performance_improvement_training"
    assert determine_training_type("Rude to customer") == "general_compliance_training"
    assert determine_training_type(None) == "general_compliance_training"


def test_clamp_score():
    assert clamp_score(-15) == 0
    assert clamp_score(130) == 100
    assert clamp_score(72.9) == 72
