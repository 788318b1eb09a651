#!/usr/bin/env python3
"""Print current crypto rates and a sample commission split."""

import argparse
import asyncio
import sys
from decimal import Decimal

from loguru import logger

from app.services.exchange_rate import create_exchange_rate_service
from app.utils.exceptions import ServiceError
from settlement import (
    CommissionCalculator,
    SERVICE_COMMISSION_RATES,
    format_commission_split,
    format_currency,
    format_rate,
)
from settlement.exceptions import SettlementError


async def show_rates(amount_usd: Decimal, service_type: str | None) -> int:
    """Fetch all rates and print the split of amount_usd in each coin."""
    service = create_exchange_rate_service()
    calculator = CommissionCalculator()

    try:
        rates = await service.get_all_rates()
        rate = calculator.rate_for_service_type(service_type)
        print(f"Split of {format_currency(amount_usd)} at {format_rate(rate)}:")

        for code, rate_to_usd in rates.items():
            if rate_to_usd is None:
                print(f"  {code}: unavailable")
                continue
            crypto_amount = await service.convert_from_usd(amount_usd, code)
            split = calculator.split_by_service_type(crypto_amount, service_type)
            print(f"  {code} @ {format_currency(rate_to_usd)}")
            summary = format_commission_split(split, code)
            print("    " + summary.replace("\n", "\n    "))
    except (ServiceError, SettlementError) as e:
        logger.error(str(e))
        return 1
    finally:
        await service.close()

    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "amount",
        nargs="?",
        type=Decimal,
        default=Decimal("100"),
        help="Amount in USD (default: 100)",
    )
    parser.add_argument(
        "--service-type",
        choices=sorted(SERVICE_COMMISSION_RATES),
        default=None,
        help="Service type for the commission tier (default: 3%%)",
    )
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="WARNING")

    return asyncio.run(show_rates(args.amount, args.service_type))


if __name__ == "__main__":
    sys.exit(main())
