from __future__ import annotations

from dataclasses import dataclass

import pytest

from src.state.entities import (
    CORE_ALLOWANCE_LABEL,
    NATIVE_ADDRESS,
    Holding,
    Market,
    MarketParams,
    Position,
    Vault,
    VaultMarketConfig,
    VaultMarketPublicAllocatorConfig,
    VaultPublicAllocatorConfig,
)
from src.state.snapshot import Snapshot


VAULT_A = "0x000000000000000000000000000000000000000A"
USER_B = "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"
ADMIN = "0x" + "ad" * 20
TOKEN_A = "0x1111111111111111111111111111111111111111"
COLLATERAL = "0x2222222222222222222222222222222222222222"
ORACLE = "0x3333333333333333333333333333333333333333"
IRM = "0x4444444444444444444444444444444444444444"

MARKET_A1 = "0x042487b563685b432d4d2341934985eca3993647799cb5468fb366fad26b4fdd"
MARKET_A2 = "0x82b7572458381128c105a67bc944e36b6318aa3c8095074efe9da6274b8e236a"

USDC = 10**6
ETHER = 10**18
PA_FEE = 5 * 10**15  # 0.005 ether


@dataclass(frozen=True)
class World:
    snapshot: Snapshot
    vault: str = VAULT_A
    user: str = USER_B
    token: str = TOKEN_A
    market_a1: str = MARKET_A1
    market_a2: str = MARKET_A2
    fee: int = PA_FEE


def _params() -> MarketParams:
    return MarketParams(loan_token=TOKEN_A, collateral_token=COLLATERAL, oracle=ORACLE, irm=IRM, lltv=86 * 10**16)


def _market(market_id: str, supply: int, borrow: int) -> Market:
    # Share price at the virtual-offset parity: 1 asset unit = 1e6 shares.
    return Market(
        id=market_id,
        params=_params(),
        total_supply_assets=supply,
        total_supply_shares=supply * 10**6,
        total_borrow_assets=borrow,
        total_borrow_shares=borrow * 10**6,
        last_update=1_700_000_000,
    )


def build_snapshot() -> Snapshot:
    """
    Vault A supplies 1000 TOKEN_A to market A1 and 400 to A2.

    Flow caps: A1 can send out up to 100 and take in 200; A2 can take in 45
    and send out 5.
    """
    markets = {
        MARKET_A1: _market(MARKET_A1, supply=10_000 * USDC, borrow=5_000 * USDC),
        MARKET_A2: _market(MARKET_A2, supply=5_000 * USDC, borrow=1_000 * USDC),
    }
    vaults = {
        VAULT_A: Vault(
            address=VAULT_A,
            asset=TOKEN_A,
            public_allocator_config=VaultPublicAllocatorConfig(admin=ADMIN, fee=PA_FEE, accrued_fee=0),
        )
    }
    positions = {
        VAULT_A: {
            MARKET_A1: Position(user=VAULT_A, market_id=MARKET_A1, supply_shares=1_000 * USDC * 10**6),
            MARKET_A2: Position(user=VAULT_A, market_id=MARKET_A2, supply_shares=400 * USDC * 10**6),
        }
    }
    configs = {
        VAULT_A: {
            MARKET_A1: VaultMarketConfig(
                vault=VAULT_A,
                market_id=MARKET_A1,
                cap=5_000 * USDC,
                public_allocator_config=VaultMarketPublicAllocatorConfig(max_in=200 * USDC, max_out=100 * USDC),
            ),
            MARKET_A2: VaultMarketConfig(
                vault=VAULT_A,
                market_id=MARKET_A2,
                cap=5_000 * USDC,
                public_allocator_config=VaultMarketPublicAllocatorConfig(max_in=45 * USDC, max_out=5 * USDC),
            ),
        }
    }
    holdings = {
        USER_B: {
            NATIVE_ADDRESS: Holding(user=USER_B, token=NATIVE_ADDRESS, balance=ETHER),
            TOKEN_A: Holding(user=USER_B, token=TOKEN_A, balance=100 * USDC),
        },
        VAULT_A: {
            TOKEN_A: Holding(
                user=VAULT_A,
                token=TOKEN_A,
                balance=0,
                erc20_allowances={CORE_ALLOWANCE_LABEL: 10**30},
            ),
        },
    }
    return Snapshot(
        chain_id=1,
        block_number=19_000_000,
        timestamp=1_700_000_000,
        markets=markets,
        vaults=vaults,
        positions=positions,
        vault_market_configs=configs,
        holdings=holdings,
    )


@pytest.fixture
def world() -> World:
    return World(snapshot=build_snapshot())
