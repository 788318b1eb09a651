"""
Standard type definitions for database models.

Provides consistent types for monetary and percentage fields across all models.
"""

from sqlalchemy import DECIMAL

# Standard money type for crypto and fiat amounts, bonuses, earnings
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Commission rate fraction (e.g., 0.0300 = 3%)
# Precision: 5 digits total, 4 after decimal point
RateType = DECIMAL(5, 4)

# Percentage metrics (e.g., 98.50 = 98.5%)
# Range: 0.00 to 999.99
PercentType = DECIMAL(5, 2)

# Average rating (0.00 - 5.00)
RatingType = DECIMAL(3, 2)
