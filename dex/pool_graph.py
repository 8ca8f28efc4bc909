"""
Token adjacency graph over the pools of one chain.

Each pool contributes an undirected token-token edge; parallel pools for the
same pair are kept in a separate pair index so cycle finding can tell DEXs
apart.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Set

import networkx as nx

from pool_arbitrage.utils import get_logger

from .types import Pool, make_pair_key

logger = get_logger(__name__)


class PoolGraph:
    """
    Adjacency view of a pool snapshot.

    Nodes are lowercased token addresses; the first spelling seen for each
    token is kept as the node's ``address`` attribute.
    """

    def __init__(self, pools: Iterable[Pool]):
        self.graph = nx.Graph()
        self.pair_index: Dict[str, List[Pool]] = defaultdict(list)
        self.pool_count = 0

        skipped = 0
        for pool in pools:
            if pool.token0.lower() == pool.token1.lower():
                skipped += 1
                continue
            self._add_pool(pool)

        if skipped:
            logger.debug(f"Ignored {skipped} self-paired pools")

    def _add_pool(self, pool: Pool) -> None:
        a, b = pool.token0.lower(), pool.token1.lower()
        for node, original in ((a, pool.token0), (b, pool.token1)):
            if node not in self.graph:
                self.graph.add_node(node, address=original)
        self.graph.add_edge(a, b)
        self.pair_index[pool.pair_key].append(pool)
        self.pool_count += 1

    @property
    def tokens(self) -> List[str]:
        """All tokens (lowercased) in insertion order."""
        return list(self.graph.nodes)

    def address(self, token: str) -> str:
        """Original spelling of a token address."""
        node = token.lower()
        if node in self.graph:
            return self.graph.nodes[node]["address"]
        return token

    def neighbors(self, token: str) -> Set[str]:
        """Tokens sharing at least one pool with token."""
        node = token.lower()
        if node not in self.graph:
            return set()
        return set(self.graph.neighbors(node))

    def pools_for(self, token_a: str, token_b: str) -> List[Pool]:
        """Pools trading the pair, in insertion order (empty if none)."""
        return list(self.pair_index.get(make_pair_key(token_a, token_b), []))

    def pair_keys(self) -> List[str]:
        return list(self.pair_index.keys())

    def __len__(self) -> int:
        return self.pool_count
