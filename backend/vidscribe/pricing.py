"""
Subscription tiers offered on the pricing page.
"""
from __future__ import annotations

from typing import Any, Dict, List

BILLING_INTERVALS = {"month", "year"}

PRICING_TIERS: Dict[str, Dict[str, Any]] = {
    "Free": {
        "name": "Free",
        "description": "Perfect for trying out the service",
        "price": {"monthly": "0", "annual": "0"},
        "price_ids": {"monthly": "", "annual": ""},
        "features": [
            "10 minutes of transcription",
            "Community support",
            "Standard processing speed",
            "Export to TXT format",
            "7-day history",
        ],
        "popular": False,
    },
    "Nano": {
        "name": "Nano",
        "description": "Perfect for small projects and individual creators",
        "price": {"monthly": "17", "annual": "120"},
        "price_ids": {
            "monthly": "price_1QIf9IKl2xab1pxWctrzj2CL",
            "annual": "price_1QIfHYKl2xab1pxWkm9Ji0WQ",
        },
        "features": [
            "24 hours of transcription",
            "Basic support",
            "Standard processing speed",
            "Export to TXT format",
            "30-day history",
        ],
        "popular": False,
    },
    "Mega": {
        "name": "Mega",
        "description": "Ideal for teams and growing businesses",
        "price": {"monthly": "29", "annual": "199"},
        "price_ids": {
            "monthly": "price_1QIf9aKl2xab1pxWuBHNfxL7",
            "annual": "price_1QIfHCKl2xab1pxWjphMJtMh",
        },
        "features": [
            "60 hours of transcription",
            "Priority support",
            "Fast processing speed",
            "Export to multiple formats",
            "90-day history",
            "Team collaboration",
        ],
        "popular": True,
    },
}


def calculate_savings(monthly_price: str, annual_price: str) -> int:
    """Percent saved by paying annually instead of twelve monthly payments."""
    monthly = float(monthly_price)
    annual = float(annual_price)
    monthly_cost_annually = monthly * 12
    if monthly_cost_annually <= 0:
        return 0
    savings = (monthly_cost_annually - annual) / monthly_cost_annually * 100
    return round(savings)


def list_tiers() -> List[Dict[str, Any]]:
    tiers = []
    for tier in PRICING_TIERS.values():
        tiers.append({
            **tier,
            "annual_savings_percent": calculate_savings(tier["price"]["monthly"], tier["price"]["annual"]),
        })
    return tiers
