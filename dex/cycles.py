"""
Candidate cycle enumeration over a PoolGraph.

Two shapes are produced:
    - 2-leg cycles: the same pair on two different DEXs (buy on one, sell
      on the other)
    - 3-leg cycles: token triangles A -> B -> C -> A

No pricing happens here; ProfitEstimator decides what is profitable.
"""

from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional

from pool_arbitrage.utils import get_logger

from .pool_graph import PoolGraph
from .types import Pool

logger = get_logger(__name__)

DEFAULT_MAX_ROUTES_PER_TOKEN = 10
TRIANGLE_DEPTH = 3


@dataclass(frozen=True)
class Cycle:
    """A closed route: pools in hop order starting and ending at start_token."""

    start_token: str
    pools: List[Pool]

    @property
    def legs(self) -> int:
        return len(self.pools)

    @property
    def route_id(self) -> str:
        """
        Stable id shared by every rotation and direction of the same pools.

        Sorted tokens and sorted pool identities, so A -> B -> C -> A,
        B -> C -> A -> B and A -> C -> B -> A over one set of pools collide.
        """
        tokens = sorted({t.lower() for p in self.pools for t in (p.token0, p.token1)})
        pools = sorted(f"{dex}@{addr}" for _, dex, addr in (p.key for p in self.pools))
        return f"{'-'.join(tokens)}:{'-'.join(pools)}"


class CycleFinder:
    """Enumerates 2-leg and 3-leg cycles on one chain's pool graph."""

    def __init__(
        self,
        graph: PoolGraph,
        max_routes_per_token: int = DEFAULT_MAX_ROUTES_PER_TOKEN,
    ):
        if max_routes_per_token < 1:
            raise ValueError(
                f"max_routes_per_token must be positive: {max_routes_per_token}"
            )
        self.graph = graph
        self.max_routes_per_token = max_routes_per_token

    def two_leg_cycles(self) -> List[Cycle]:
        """
        Every unordered pair of pools on the same token pair but different DEXs.

        The cycle starts at the first pool's token0.
        """
        cycles: List[Cycle] = []
        for pair_key in self.graph.pair_keys():
            pools = self.graph.pools_for(*pair_key.split("-", 1))
            if len(pools) < 2:
                continue
            for p1, p2 in combinations(pools, 2):
                if p1.dex_id.lower() == p2.dex_id.lower():
                    continue
                cycles.append(Cycle(start_token=p1.token0, pools=[p1, p2]))

        logger.debug(f"Found {len(cycles)} 2-leg cycles")
        return cycles

    def three_leg_cycles(self, depth: int = TRIANGLE_DEPTH) -> List[Cycle]:
        """
        Token cycles of exactly `depth` hops, found by bounded DFS.

        Each token appears at most once per path. At most
        max_routes_per_token cycles are returned per start token, so the
        result is not guaranteed to be complete. Every rotation and direction
        of a triangle is returned; Cycle.route_id groups them.
        """
        cycles: List[Cycle] = []
        for start in self.graph.tokens:
            found = self._cycles_from(start, depth)
            for path in found:
                cycle = self._resolve(path)
                if cycle is not None:
                    cycles.append(cycle)

        logger.debug(f"Found {len(cycles)} {depth}-leg cycles")
        return cycles

    def _cycles_from(self, start: str, depth: int) -> List[List[str]]:
        """Token paths [start, t1, ..., t(depth-1)] whose last token neighbours start."""
        results: List[List[str]] = []
        stack = [[start]]

        while stack and len(results) < self.max_routes_per_token:
            path = stack.pop()
            last = path[-1]

            if len(path) == depth:
                if start in self.graph.neighbors(last):
                    results.append(path)
                continue

            # Reverse-sorted push keeps pop order ascending
            for nxt in sorted(self.graph.neighbors(last), reverse=True):
                if nxt in path:
                    continue
                stack.append(path + [nxt])

        return results

    def _resolve(self, path: List[str]) -> Optional[Cycle]:
        """Map a token path to pools, taking the first pool for each hop."""
        hops = list(zip(path, path[1:] + path[:1]))
        pools: List[Pool] = []
        for token_a, token_b in hops:
            candidates = self.graph.pools_for(token_a, token_b)
            if not candidates:
                return None
            pools.append(candidates[0])
        return Cycle(start_token=self.graph.address(path[0]), pools=pools)

    def all_cycles(self) -> List[Cycle]:
        """2-leg cycles followed by 3-leg cycles."""
        return self.two_leg_cycles() + self.three_leg_cycles()
