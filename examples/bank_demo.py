#!/usr/bin/env python3
"""
Example: Reserve Bank Demo

Demonstrates:
- InMemoryOracle publishing the peg rate
- Bank bootstrapping both tokens from an empty reserve
- Rejections at the reserve floor and ceiling
- InMemoryLedger recording every accepted settlement

This shows the full cycle:
ORACLE -> QUOTE -> MINT/REDEEM -> SETTLEMENT -> LEDGER
"""

from decimal import Decimal

from stablebank import Bank, BankConfig, InMemoryLedger, InMemoryOracle
from stablebank.runtime import configure_logging


def show_state(bank: Bank) -> None:
    state = bank.state
    stable_price, residual_price = bank.prices()
    print(f"    Reserves: {state.reserves} ERG")
    print(f"    Stable supply: {state.stable_supply} (price {stable_price})")
    print(f"    Residual supply: {state.residual_supply} (price {residual_price})")
    print(f"    Reserve ratio: {bank.reserve_ratio()}")


def main():
    configure_logging("WARNING")

    print("=" * 60)
    print("Reserve Bank Demo")
    print("=" * 60)
    print()

    oracle = InMemoryOracle()
    ledger = InMemoryLedger()
    config = BankConfig(
        fee_rate=Decimal("0.01"),
        min_reserve_ratio=Decimal("1.5"),
        max_reserve_ratio=Decimal("4"),
        residual_default_price=Decimal("1"),
        base_currency="ERG",
        peg_currency="USD",
        stable_token="SUSD",
        residual_token="SRSV",
    )
    bank = Bank(config, oracle, ledger)

    # =========================================================================
    # Step 1: Publish the peg rate
    # =========================================================================
    print("Step 1: Publishing Peg Rate")
    print("-" * 40)

    rate = oracle.update_conversion_rate("USD", "ERG", Decimal("0.5"))
    print(f"  1 {rate.source} = {rate.rate} {rate.target}")
    print()

    # =========================================================================
    # Step 2: Bootstrap
    # =========================================================================
    print("Step 2: Bootstrapping")
    print("-" * 40)

    quote = bank.quote(Decimal("100"), Decimal("0"))
    print(f"  Stable alone: {quote.reason.value if quote.reason else 'acceptable'}")

    result = bank.mint_or_redeem(Decimal("100"), Decimal("100"), counterparty="founder")
    print(f"  Founder mints 100 SUSD + 100 SRSV: {result.status.name}")
    print(f"    Deposited: {-result.amount_base} ERG, fee {result.fee} ERG")
    show_state(bank)
    print()

    # =========================================================================
    # Step 3: Trading
    # =========================================================================
    print("Step 3: Trading")
    print("-" * 40)

    requests = [
        ("alice", Decimal("20"), Decimal("0")),
        ("bob", Decimal("0"), Decimal("500")),
        ("bob", Decimal("0"), Decimal("10")),
        ("alice", Decimal("-50"), Decimal("0")),
    ]
    for counterparty, amount_stable, amount_residual in requests:
        result = bank.mint_or_redeem(amount_stable, amount_residual, counterparty=counterparty)
        outcome = result.status.name if result.accepted else f"REJECTED ({result.reason.value})"
        print(f"  {counterparty}: stable {amount_stable}, residual {amount_residual} -> {outcome}")
        if result.accepted:
            print(f"    Base flow: {result.amount_base} ERG, fee {result.fee} ERG")
    print()

    # =========================================================================
    # Step 4: The peg moves
    # =========================================================================
    print("Step 4: Peg Rate Doubles")
    print("-" * 40)

    oracle.update_conversion_rate("USD", "ERG", Decimal("1"))
    show_state(bank)
    print()

    # =========================================================================
    # Step 5: Summary
    # =========================================================================
    print("Step 5: Summary Statistics")
    print("-" * 40)

    stats = bank.get_stats()
    ledger_stats = ledger.get_stats()
    print(f"  Bank:")
    print(f"    Accepted: {stats.accepted_transactions}")
    print(f"    Rejected: {stats.rejected_transactions}")
    print(f"    Fees collected: {stats.total_fees} ERG")
    print(f"  Ledger:")
    print(f"    Entries: {ledger_stats.height}")
    print(f"    Transfers: {ledger_stats.total_transfers}")
    print(f"    Bank ERG balance: {ledger.balance_of('bank', 'ERG')}")
    print(f"    Chain valid: {ledger_stats.chain_valid}")

    print()
    print("=" * 60)
    print("Example Complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
