import re
import logging
from typing import List

from .models import DetectedEntities

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"(?<![0-9a-fA-F])0x[a-fA-F0-9]{40}(?![0-9a-fA-F])")
TICKER_PATTERN = re.compile(r"\b[A-Z]{2,6}\b")

# Uppercase words that match the ticker pattern but are plain English
STOP_WORDS = frozenset([
    "THE", "AND", "FOR", "ARE", "BUT", "NOT", "YOU", "ALL", "CAN", "HER",
    "WAS", "ONE", "OUR", "OUT", "DAY", "GET", "HAS", "HIM", "HOW", "ITS",
    "NEW", "NOW", "OLD", "SEE", "TWO", "WHO", "BOY", "DID", "HAD", "LET",
    "PUT", "SAY", "SHE", "TOO", "USE", "WITH", "THAT", "THIS", "HAVE", "FROM",
    "THEY", "KNOW", "WANT", "BEEN", "GOOD", "MUCH", "SOME", "TIME", "VERY",
    "WHEN", "COME", "HERE", "JUST", "LIKE", "LONG", "MAKE", "MANY", "OVER",
    "SUCH", "TAKE", "THAN", "THEM", "WELL", "WERE",
])

# Checked in order; first keyword hit wins
_NETWORK_KEYWORDS = [
    ("base", ("base",)),
    ("polygon", ("polygon", "matic")),
    ("arbitrum", ("arbitrum",)),
    ("optimism", ("optimism",)),
    ("ethereum", ("ethereum", "eth", "mainnet")),
]


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def detect_addresses(text: str) -> List[str]:
    return _unique(ADDRESS_PATTERN.findall(text))


def detect_tickers(text: str) -> List[str]:
    matches = TICKER_PATTERN.findall(text)
    return _unique([m for m in matches if m not in STOP_WORDS])


def detect_network(text: str) -> str:
    lowered = text.lower()
    for network, keywords in _NETWORK_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return network
    return "ethereum"


def network_config(network: str) -> str:
    """Nodit network name for a protocol. Every supported protocol is queried on mainnet."""
    return "mainnet"


def detect(text: str) -> DetectedEntities:
    """
    Extract candidate tickers and hex addresses from free text.

    Addresses seed both the contract and the wallet candidate lists; the
    contract analysis later decides which of them are really wallets.
    """
    tickers = detect_tickers(text)
    addresses = detect_addresses(text)
    network = detect_network(text)

    logger.info(f"🪙 Detected token tickers: {tickers}")
    logger.info(f"🔍 Detected addresses: {addresses}")
    logger.info(f"🌐 Detected network: {network}")

    return DetectedEntities(
        tokens=tickers,
        contracts=list(addresses),
        wallets=list(addresses),
        network=network,
    )
