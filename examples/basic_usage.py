"""Basic usage examples for the Sui Wallet Aggregator.

This file demonstrates:
- Wallet balances sorted by USD value
- Recent transaction activity with per-leg prices
- Kiosk NFTs with last-trade prices
- DeFi protocols on a chain
- Handling unavailable and partial results

Set DEFAULT_WALLET_ADDRESS (or pass an address on the command line) before
running, and BLOCKBERRY_API_KEY for NFT images.
"""

import asyncio
import logging
import sys
from decimal import Decimal

from wallet_aggregator import create_application, total_balance_usd
from wallet_aggregator.app import WalletAggregator
from wallet_aggregator.clients import InvalidAddressError, MissingInputError

logger = logging.getLogger(__name__)


async def example_1_balances(app: WalletAggregator, address: str | None) -> None:
    """Example 1: Token balances for a wallet."""

    print("💰 Example 1: Wallet Balances")
    print("=" * 50)

    result = await app.get_balances(address)
    if not result.is_available:
        print(f"❌ Balances unavailable: {result.error}")
        return

    for entry in result.records:
        price = f"${entry.price_usd:,.4f}" if entry.price_usd is not None else "no price"
        print(f"   {entry.display_name:<12} {entry.scaled_balance:>24} @ {price:<14} = ${entry.balance_usd:,.2f}")

    print(f"✅ Total value: ${total_balance_usd(result.records):,.2f}")


async def example_2_activity(app: WalletAggregator, address: str | None) -> None:
    """Example 2: Recent transactions."""

    print("\n📜 Example 2: Recent Activity")
    print("=" * 50)

    result = await app.get_activity(address)
    if not result.is_available:
        print(f"❌ Activity unavailable: {result.error}")
        return
    if result.is_partial:
        print(f"⚠️ Partial history, stopped early: {result.error}")

    for record in result.records[:10]:
        legs = ", ".join(f"{leg.amount} {leg.token_id.split('::')[-1]} (price: {leg.price_usd})" for leg in record.legs)
        print(f"   {record.timestamp_ms}: {legs}")

    print(f"✅ {len(result.records)} transactions")


async def example_3_nfts(app: WalletAggregator, address: str | None) -> None:
    """Example 3: Kiosk NFTs."""

    print("\n🖼️ Example 3: Kiosk NFTs")
    print("=" * 50)

    result = await app.get_nfts(address, floor_price=Decimal("0"))
    if not result.is_available:
        print(f"❌ NFTs unavailable: {result.error}")
        return

    for kiosk in result.records:
        print(f"   Kiosk {kiosk.index}: {kiosk.kiosk_id}")
        for item in kiosk.items:
            price = item.latest_price if item.latest_price is not None else "N/A"
            print(f"      {item.object_id} [{item.collection_id}] last price: {price} image: {item.img_url}")


async def example_4_protocols(app: WalletAggregator) -> None:
    """Example 4: DeFi protocols deployed on Sui."""

    print("\n🌐 Example 4: DeFi Protocols")
    print("=" * 50)

    summary = await app.get_protocols("sui")
    top = sorted(summary.protocols, key=lambda p: p.tvl or 0, reverse=True)[:10]
    for protocol in top:
        print(f"   {protocol.name:<30} TVL ${protocol.tvl or 0:,.0f}")

    print(f"✅ {summary.total_protocols} protocols on {summary.chain}")


async def main(address: str | None = None) -> None:
    async with create_application() as app:
        try:
            await example_1_balances(app, address)
            await example_2_activity(app, address)
            await example_3_nfts(app, address)
        except InvalidAddressError as e:
            print(f"❌ Invalid wallet address: {e}")
            return
        except MissingInputError:
            print("❌ No wallet address: pass one as an argument or set DEFAULT_WALLET_ADDRESS")
            return

        await example_4_protocols(app)

        stats = await app.get_stats()
        print(f"\n📊 HTTP requests: {stats['sui_http']['requests']} Sui, {stats['price_http']['requests']} other")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
