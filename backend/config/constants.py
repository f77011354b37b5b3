# backend/config/constants.py

from decimal import Decimal

# -----------------------------
# PICKUP PRICING (INR per kg)
# -----------------------------

RATE_PER_KG = {
    "plastic": Decimal("15"),
    "paper": Decimal("8"),
    "metal": Decimal("30"),
    "e-waste": Decimal("25"),
    "organic": Decimal("2"),
    "mixed": Decimal("5"),
    "cardboard": Decimal("10"),
    "glass": Decimal("6"),
}
DEFAULT_RATE_PER_KG = Decimal("5")

# -----------------------------
# REWARDS
# -----------------------------

GREEN_COINS_PER_RUPEE = Decimal("0.5")   # award = round(estimated_value * this)
ECO_SCORE_PER_KG = Decimal("0.5")        # floor(quantity * this) on completion
CO2_SAVED_PER_KG = Decimal("0.5")        # kg CO2 avoided per kg recycled

# -----------------------------
# MARKETPLACE
# -----------------------------

PLATFORM_FEE_PERCENT = Decimal("5")
SINGLE_UNIT_LISTINGS = True              # each DIY listing is one physical item

# -----------------------------
# ASSIGNMENT MATCHER
# -----------------------------

URGENCY_HIGH_HOURS = 24
URGENCY_MEDIUM_HOURS = 72

# -----------------------------
# DASHBOARDS
# -----------------------------

TOP_COLLECTORS_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10
MONTHLY_BUCKETS = 12
