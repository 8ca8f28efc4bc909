"""
Core data types for cross-DEX arbitrage scanning.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

ExecutionHint = Literal["flashloan", "atomic_multicall"]


@dataclass(frozen=True)
class Pool:
    """
    A liquidity pool on one chain, as seen by a single scan.

    Attributes:
        chain_id: EVM chain id
        dex_id: DEX identifier (e.g., "uniswapv2", "aerodrome")
        pair_address: On-chain address of the pair contract
        token0: Address of token0
        token1: Address of token1
        fee_bps: Swap fee in basis points (30 = 0.3%)
        liquidity_usd: Pool TVL in USD
        price: Mid price of token0 in token1 units; None when unknown
        reserve0: Pool balance of token0 in token units; None when unknown
        reserve1: Pool balance of token1 in token units; None when unknown
    """

    chain_id: int
    dex_id: str
    pair_address: str
    token0: str
    token1: str
    fee_bps: float
    liquidity_usd: float = 0.0
    price: Optional[float] = None
    reserve0: Optional[float] = None
    reserve1: Optional[float] = None

    @property
    def key(self) -> Tuple[int, str, str]:
        """Identity of the pool: (chain_id, dex_id, pair_address)."""
        return (self.chain_id, self.dex_id.lower(), self.pair_address.lower())

    @property
    def pair_key(self) -> str:
        """Direction-free token pair key, e.g. '0xaaa-0xbbb'."""
        return make_pair_key(self.token0, self.token1)

    def has_token(self, token: str) -> bool:
        """True if token is one side of this pool (case-insensitive)."""
        token = token.lower()
        return token in (self.token0.lower(), self.token1.lower())

    def other_token(self, token: str) -> Optional[str]:
        """The opposite side of the pool, or None if token is not in it."""
        token = token.lower()
        if token == self.token0.lower():
            return self.token1
        if token == self.token1.lower():
            return self.token0
        return None

    def hop_descriptor(self) -> str:
        """Compact hop label: 'dex:0xabcdef/30'."""
        fee = int(self.fee_bps) if float(self.fee_bps).is_integer() else self.fee_bps
        return f"{self.dex_id}:{self.pair_address[:8]}/{fee}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "dex_id": self.dex_id,
            "pair_address": self.pair_address,
            "token0": self.token0,
            "token1": self.token1,
            "fee_bps": self.fee_bps,
            "liquidity_usd": self.liquidity_usd,
            "price": self.price,
            "reserve0": self.reserve0,
            "reserve1": self.reserve1,
        }


def make_pair_key(token_a: str, token_b: str) -> str:
    """Lowercased tokens sorted lexicographically and joined with '-'."""
    a, b = sorted((token_a.lower(), token_b.lower()))
    return f"{a}-{b}"


@dataclass
class ArbitrageRoute:
    """
    A priced arbitrage cycle produced by ProfitEstimator.

    Attributes:
        chain_id: Chain the cycle lives on
        route: Hop descriptors in execution order
        legs: Number of swaps (2 or 3)
        input_token: Token the cycle starts and ends in
        amount_in: Test amount in input token units
        amount_out: Simulated output after all hops
        net_pnl: amount_out - amount_in - gas_cost_eth
        net_pnl_bps: net_pnl relative to amount_in, in basis points
        gas_cost_eth: Estimated gas cost in native units
        reason: Why the opportunity exists (e.g., "INTER-DEX + TWAP_DELAY")
        atomic_safe: Whether the route can run in one transaction
        execution_hint: "flashloan" for 2 legs, "atomic_multicall" for 3
        pools: Pools used, in hop order
    """

    chain_id: int
    route: List[str]
    legs: int
    input_token: str
    amount_in: float
    amount_out: float
    net_pnl: float
    net_pnl_bps: float
    gas_cost_eth: float
    reason: str
    atomic_safe: bool = True
    execution_hint: ExecutionHint = "flashloan"
    pools: List[Pool] = field(default_factory=list)

    @property
    def dex_ids(self) -> List[str]:
        return [p.dex_id for p in self.pools]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "route": list(self.route),
            "legs": self.legs,
            "input_token": self.input_token,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "net_pnl": self.net_pnl,
            "net_pnl_bps": self.net_pnl_bps,
            "gas_cost_eth": self.gas_cost_eth,
            "reason": self.reason,
            "atomic_safe": self.atomic_safe,
            "execution_hint": self.execution_hint,
            "pools": [p.pair_address for p in self.pools],
        }
