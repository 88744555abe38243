"""
Duka Constants

Centralized constants for commerce rules that span multiple apps.
"""

from decimal import Decimal
from typing import Final

# ===============================================================================
# MONEY 💰
# ===============================================================================

CENTS_PER_UNIT: Final[int] = 100
DEFAULT_CURRENCY: Final[str] = 'KES'

# ===============================================================================
# PAGINATION
# ===============================================================================

DEFAULT_PAGE_SIZE: Final[int] = 10
MAX_PAGE_SIZE: Final[int] = 100

# ===============================================================================
# COUPONS 🎟️
# ===============================================================================

COUPON_CODE_MIN_LENGTH: Final[int] = 3
COUPON_CODE_MAX_LENGTH: Final[int] = 20
MAX_PERCENTAGE_DISCOUNT: Final[Decimal] = Decimal('100')
COUPON_USAGE_MAX_RETRIES: Final[int] = 3

# ===============================================================================
# ORDERS 📦
# ===============================================================================

ORDER_NUMBER_PREFIX: Final[str] = 'ORD'
ORDER_SEQUENCE_WIDTH: Final[int] = 4

# ===============================================================================
# KENYA 🇰🇪
# ===============================================================================

KENYAN_PHONE_PATTERN: Final[str] = r'^(\+254|254|0)([17]\d{8})$'
KENYAN_COUNTRY_CODE: Final[str] = '254'
MAX_PHONE_LENGTH: Final[int] = 20

# ===============================================================================
# DELIVERY 🚚
# ===============================================================================

AGENT_ID_PREFIX: Final[str] = 'DA'
MINUTES_PER_DAY: Final[int] = 24 * 60
MAX_AGENT_RATING: Final[Decimal] = Decimal('5')
AGENT_PERFORMANCE_MAX_RETRIES: Final[int] = 3
