"""
System-Wide Constants and Schemas
==================================
Centralized location for input schemas, data-quality thresholds and the
default Indian retail calendar.

Design Principles:
- Schemas define expected columns and types of every boundary input
- Calendar data is plain records; the Seasonal/Event Adjuster parses them
- Tunable numbers belong to bazaarflow_ai.config, not here
"""

from typing import Dict, List, Any

# =============================================================================
# DATA SCHEMAS
# =============================================================================
# Required columns trigger a DataValidationError when missing.
# Optional columns are validated if present but never fail the load.

TRANSACTION_SCHEMA = {
    "name": "transactions",
    "description": "Validated point-of-sale transaction stream",
    "required_columns": [
        "business_id", "product_id", "timestamp", "quantity", "unit_price", "location"
    ],
    "optional_columns": ["transaction_id", "channel"],
    "timestamp_columns": ["timestamp"],
    "numeric_columns": ["quantity", "unit_price"],
    "non_negative_columns": ["quantity", "unit_price"],
}

CATALOG_SCHEMA = {
    "name": "catalog",
    "description": "Product master with costs, stock and supplier terms",
    "required_columns": [
        "product_id", "category", "location", "cost_price", "current_price"
    ],
    "optional_columns": [
        "competitor_price", "current_stock", "lead_time_days",
        "lead_time_std_days", "storage_units_per_item", "attributes"
    ],
    "timestamp_columns": [],
    "numeric_columns": [
        "cost_price", "current_price", "competitor_price", "current_stock",
        "lead_time_days", "lead_time_std_days", "storage_units_per_item"
    ],
    "non_negative_columns": ["cost_price", "current_price", "current_stock"],
}

EVENT_RECORD_SCHEMA = {
    "name": "event_registry",
    "description": "Calendar collaborator records for festivals and weather windows",
    "required_columns": ["name", "categories", "multiplier"],
    "optional_columns": [
        "recurrence", "event_type", "locations", "month", "day", "dates", "duration_days",
        "ramp_up_days", "decay_days", "version"
    ],
    "timestamp_columns": [],
    "numeric_columns": ["multiplier", "duration_days", "ramp_up_days", "decay_days"],
    "non_negative_columns": ["multiplier", "duration_days", "ramp_up_days", "decay_days"],
}

# =============================================================================
# DATA QUALITY THRESHOLDS
# =============================================================================

DATA_QUALITY_THRESHOLDS = {
    # Rows dropped above this share of the batch are logged as critical
    "dropped_rows_warning_pct": 0.01,
    "dropped_rows_critical_pct": 0.10,
    
    # Timestamps outside this window are suspicious
    "min_valid_date": "2015-01-01",
    "max_valid_date": "2035-12-31",
    
    # Numeric bounds for outlier warnings
    "quantity_max": 100000,
    "price_max": 10000000,
}

# =============================================================================
# LOCATIONS
# =============================================================================
# Locations are "STATE/City" paths. "*" is the nationwide scope.

NATIONWIDE = "*"
ALL_CATEGORIES = "*"
LOCATION_SEPARATOR = "/"

# Nationwide regional default used when no published factor matches.
NATIONWIDE_REGIONAL_DEFAULT = {
    "location": NATIONWIDE,
    "category": ALL_CATEGORIES,
    "growth_rate": 0.0,
    "competitive_intensity": 0.0,
    "policy_impact": 0.0,
}

# =============================================================================
# PRICE TIERS
# =============================================================================
# Upper bounds (INR, exclusive) used by cold-start similarity.

PRICE_TIER_BOUNDS = [50.0, 200.0, 1000.0, 5000.0]

# =============================================================================
# DEFAULT CALENDAR
# =============================================================================
# "dated" events list the peak start per year (lunar/solar festivals);
# "fixed" events repeat on the same Gregorian month/day every year.

DEFAULT_EVENT_CALENDAR: List[Dict[str, Any]] = [
    {
        "name": "Diwali",
        "recurrence": "dated",
        "event_type": "festival",
        "dates": {2024: "2024-11-01", 2025: "2025-10-20", 2026: "2026-11-08", 2027: "2027-10-29"},
        "categories": ["sweets", "apparel", "electronics", "home_decor", "gifts"],
        "locations": [NATIONWIDE],
        "multiplier": 2.5,
        "duration_days": 3,
        "ramp_up_days": 10,
        "decay_days": 3,
    },
    {
        "name": "Holi",
        "recurrence": "dated",
        "event_type": "festival",
        "dates": {2024: "2024-03-25", 2025: "2025-03-14", 2026: "2026-03-04", 2027: "2027-03-22"},
        "categories": ["sweets", "colours", "beverages"],
        "locations": [NATIONWIDE],
        "multiplier": 1.8,
        "duration_days": 2,
        "ramp_up_days": 5,
        "decay_days": 1,
    },
    {
        "name": "Eid al-Fitr",
        "recurrence": "dated",
        "event_type": "festival",
        "dates": {2024: "2024-04-11", 2025: "2025-03-31", 2026: "2026-03-20", 2027: "2027-03-10"},
        "categories": ["sweets", "apparel", "groceries"],
        "locations": [NATIONWIDE],
        "multiplier": 1.7,
        "duration_days": 2,
        "ramp_up_days": 7,
        "decay_days": 2,
    },
    {
        "name": "Durga Puja",
        "recurrence": "dated",
        "event_type": "festival",
        "dates": {2024: "2024-10-10", 2025: "2025-09-29", 2026: "2026-10-17", 2027: "2027-10-06"},
        "categories": ["apparel", "sweets", "gifts"],
        "locations": ["WB", "AS", "OD"],
        "multiplier": 2.2,
        "duration_days": 4,
        "ramp_up_days": 14,
        "decay_days": 2,
    },
    {
        "name": "Onam",
        "recurrence": "dated",
        "event_type": "festival",
        "dates": {2024: "2024-09-15", 2025: "2025-09-05", 2026: "2026-08-26", 2027: "2027-09-12"},
        "categories": ["groceries", "apparel", "home_decor"],
        "locations": ["KL"],
        "multiplier": 2.0,
        "duration_days": 2,
        "ramp_up_days": 8,
        "decay_days": 1,
    },
    {
        "name": "Ganesh Chaturthi",
        "recurrence": "dated",
        "event_type": "festival",
        "dates": {2024: "2024-09-07", 2025: "2025-08-27", 2026: "2026-09-14", 2027: "2027-09-04"},
        "categories": ["sweets", "home_decor"],
        "locations": ["MH", "GA", "KA"],
        "multiplier": 1.9,
        "duration_days": 10,
        "ramp_up_days": 5,
        "decay_days": 1,
    },
    {
        "name": "Pongal",
        "recurrence": "fixed",
        "event_type": "festival",
        "month": 1,
        "day": 14,
        "categories": ["groceries", "sweets", "apparel"],
        "locations": ["TN"],
        "multiplier": 1.8,
        "duration_days": 4,
        "ramp_up_days": 5,
        "decay_days": 1,
    },
    {
        "name": "Christmas",
        "recurrence": "fixed",
        "event_type": "festival",
        "month": 12,
        "day": 25,
        "categories": ["gifts", "bakery", "home_decor"],
        "locations": [NATIONWIDE],
        "multiplier": 1.5,
        "duration_days": 1,
        "ramp_up_days": 7,
        "decay_days": 1,
    },
    {
        "name": "Monsoon (rainwear)",
        "recurrence": "fixed",
        "event_type": "weather_window",
        "month": 6,
        "day": 1,
        "categories": ["rainwear", "umbrellas"],
        "locations": [NATIONWIDE],
        "multiplier": 1.6,
        "duration_days": 122,
        "ramp_up_days": 14,
        "decay_days": 14,
    },
    {
        "name": "Monsoon (outdoor apparel)",
        "recurrence": "fixed",
        "event_type": "weather_window",
        "month": 6,
        "day": 1,
        "categories": ["footwear", "apparel"],
        "locations": [NATIONWIDE],
        "multiplier": 0.9,
        "duration_days": 122,
        "ramp_up_days": 14,
        "decay_days": 14,
    },
]
