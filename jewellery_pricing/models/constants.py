"""Domain constants and enumerations for validation.

Grades mirror the keys of the default diamond multiplier tables; the
multiplier maps themselves may carry extra keys added by an admin.
"""

from typing import Dict, Set

METALS: Set[str] = {"gold", "silver"}
MATERIALS: Set[str] = {"gold", "silver", "diamond", "other"}
STANDARD_KARATS: Set[int] = {24, 22, 18}
METAL_SYMBOLS: Dict[str, str] = {"gold": "XAU", "silver": "XAG"}

CUT_GRADES: Set[str] = {"excellent", "very-good", "good", "fair", "poor"}
COLOR_GRADES: Set[str] = {"D", "E", "F", "G", "H", "I", "J", "K", "L", "M"}
CLARITY_GRADES: Set[str] = {
    "FL",
    "IF",
    "VVS1",
    "VVS2",
    "VS1",
    "VS2",
    "SI1",
    "SI2",
    "I1",
    "I2",
    "I3",
}

PAYMENT_METHODS: Set[str] = {"cod", "card", "upi"}
ORDER_STATUSES: Set[str] = {
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "returned",
}
