"""
Token safety scores from the GoPlus token-security API.

The score starts at 100 and loses points for each hazard GoPlus reports
(honeypot, mint authority, hidden owner, high taxes, ...), floored at 0.
Tokens GoPlus has no data for are left out of the result instead of being
given a default score.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from ..metrics import ArbitrageMetrics
from ..utils import chunked, get_logger

logger = get_logger(__name__)

PROVIDER_NAME = "goplus"

# GoPlus boolean flag -> score penalty
FLAG_PENALTIES = {
    "is_honeypot": 100,
    "cannot_sell_all": 50,
    "selfdestruct": 40,
    "hidden_owner": 30,
    "can_take_back_ownership": 30,
    "owner_change_balance": 30,
    "is_blacklisted": 20,
    "transfer_pausable": 20,
    "trading_cooldown": 15,
    "is_mintable": 15,
    "is_proxy": 10,
    "external_call": 10,
}

CLOSED_SOURCE_PENALTY = 20
HIGH_TAX_THRESHOLD = 0.10
HIGH_TAX_PENALTY = 20


@dataclass(frozen=True)
class SafetyReport:
    """Score (0-100) and the hazard flags that lowered it."""

    score: float
    flags: List[str] = field(default_factory=list)
    symbol: Optional[str] = None
    name: Optional[str] = None
    decimals: Optional[int] = None


def _flag_set(data: Dict[str, Any], key: str) -> bool:
    return str(data.get(key, "0")) == "1"


def _tax(data: Dict[str, Any], key: str) -> float:
    try:
        return float(data.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


def score_token(data: Dict[str, Any]) -> SafetyReport:
    """
    Score one GoPlus token record.

    Args:
        data: The per-address object from the token_security result

    Returns:
        SafetyReport with score floored at 0
    """
    score = 100.0
    flags: List[str] = []

    for key, penalty in FLAG_PENALTIES.items():
        if _flag_set(data, key):
            flags.append(key.upper())
            score -= penalty

    if "is_open_source" in data and not _flag_set(data, "is_open_source"):
        flags.append("CLOSED_SOURCE")
        score -= CLOSED_SOURCE_PENALTY

    for key in ("buy_tax", "sell_tax"):
        if _tax(data, key) > HIGH_TAX_THRESHOLD:
            flags.append(f"HIGH_{key.upper()}")
            score -= HIGH_TAX_PENALTY

    decimals = data.get("decimals")
    try:
        decimals = int(decimals) if decimals is not None else None
    except (TypeError, ValueError):
        decimals = None

    return SafetyReport(
        score=max(0.0, score),
        flags=flags,
        symbol=data.get("token_symbol"),
        name=data.get("token_name"),
        decimals=decimals,
    )


class SecurityScoreClient:
    """GoPlus token-security lookups, batched like the DexScreener client."""

    def __init__(
        self,
        base_url: str = "https://api.gopluslabs.io",
        timeout_sec: float = 10.0,
        batch_size: int = 30,
        batch_delay_sec: float = 0.2,
        session: Optional[requests.Session] = None,
        metrics: Optional[ArbitrageMetrics] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.batch_size = batch_size
        self.batch_delay_sec = batch_delay_sec
        self.session = session or requests.Session()
        self.metrics = metrics
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "SecurityScoreClient":
        return cls(
            base_url=settings.goplus_url,
            timeout_sec=settings.timeout_sec,
            batch_size=settings.batch_size,
            batch_delay_sec=settings.batch_delay_sec,
            **kwargs,
        )

    def get_scores(
        self, chain_id: int, addresses: Sequence[str]
    ) -> Dict[str, SafetyReport]:
        """
        Safety reports keyed by lowercased address.

        Addresses without data (unknown to GoPlus, or in a failed batch)
        are absent.
        """
        reports: Dict[str, SafetyReport] = {}
        url = f"{self.base_url}/api/v1/token_security/{chain_id}"

        for i, batch in enumerate(chunked(addresses, self.batch_size)):
            if i > 0 and self.batch_delay_sec > 0:
                self._sleep(self.batch_delay_sec)
            for address, data in self._fetch(url, batch).items():
                if isinstance(data, dict) and data:
                    reports[address.lower()] = score_token(data)

        return reports

    def _fetch(self, url: str, batch: List[str]) -> Dict[str, Any]:
        try:
            response = self.session.get(
                url,
                params={"contract_addresses": ",".join(batch)},
                timeout=self.timeout_sec,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"GoPlus request failed for {len(batch)} address(es): {e}")
            if self.metrics:
                self.metrics.record_provider_failure(PROVIDER_NAME)
            return {}

        if not isinstance(payload, dict) or payload.get("code") != 1:
            logger.warning(
                f"GoPlus returned an error: {payload.get('message') if isinstance(payload, dict) else payload}"
            )
            if self.metrics:
                self.metrics.record_provider_failure(PROVIDER_NAME)
            return {}

        result = payload.get("result")
        return result if isinstance(result, dict) else {}
