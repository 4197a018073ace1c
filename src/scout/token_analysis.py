import math
import logging
from typing import Any, Dict, List, Optional, Tuple

from .connection import ConnectionManager, parse_tool_result
from .detection import network_config
from .models import TokenAnalysisResult

logger = logging.getLogger(__name__)

SEARCH_RESULTS = 10
TOP_HOLDERS = 5


def _supply_score(total_supply: Any) -> float:
    try:
        supply = int(total_supply)
    except (TypeError, ValueError):
        return 0.0
    if supply <= 0:
        return 0.0
    return min(math.log10(supply), 25)


def score_candidate(ticker: str, item: Dict[str, Any]) -> float:
    """Rank a keyword-search row against the ticker the user typed."""
    needle = ticker.lower()
    symbol = (item.get("symbol") or "").lower()
    name = (item.get("name") or "").lower()
    score = 0.0

    if symbol == needle:
        score += 100
    elif needle in symbol:
        score += 50

    if needle in name:
        score += 25

    if item.get("totalSupply"):
        score += _supply_score(item["totalSupply"])

    if item.get("deployedAt"):
        score += 10

    return score


def select_best_match(ticker: str, items: List[Dict[str, Any]]) -> Tuple[Optional[Dict[str, Any]], float]:
    best_match = None
    best_score = 0.0
    for item in items:
        score = score_candidate(ticker, item)
        if score > best_score:
            best_score = score
            best_match = item
    return best_match, best_score


def confidence_label(score: float) -> str:
    if score > 100:
        return "high"
    if score > 50:
        return "medium"
    return "low"


def _items(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, dict):
        return payload.get("items") or []
    if isinstance(payload, list):
        return payload
    return []


async def analyze_token(ticker: str, manager: ConnectionManager, network: str) -> TokenAnalysisResult:
    logger.info(f"🪙 Analyzing token ticker: {ticker}")
    nodit_network = network_config(network)

    try:
        raw_search = await manager.call(
            "searchTokenContractMetadataByKeyword",
            network,
            nodit_network,
            {"keyword": ticker, "rpp": SEARCH_RESULTS, "withCount": True},
        )
        try:
            search_result = parse_tool_result(raw_search)
        except ValueError as e:
            logger.error(f"❌ Failed to parse JSON response for {ticker}: {e}")
            return TokenAnalysisResult(
                symbol=ticker, network=network, error="Failed to parse API response", searched=False
            )

        items = _items(search_result)
        logger.info(f"🔍 Found {len(items)} potential matches for {ticker}")
        if not items:
            return TokenAnalysisResult(
                symbol=ticker,
                network=network,
                error="Token not found in blockchain data",
                searched=True,
                search_count=0,
            )

        best_match, best_score = select_best_match(ticker, items)
        if best_match is None:
            return TokenAnalysisResult(
                symbol=ticker,
                network=network,
                error="No suitable match found among search results",
                searched=True,
                search_count=len(items),
            )

        contract_address = best_match.get("address")
        logger.info(
            f"🎯 Best match for {ticker}: {best_match.get('name')} ({best_match.get('symbol')}) "
            f"at {contract_address} (score: {best_score:.2f})"
        )

        metadata = best_match
        metadata_error = None
        analysis_depth = "comprehensive"
        try:
            raw_metadata = await manager.call(
                "getTokenContractMetadataByContracts",
                network,
                nodit_network,
                {"contractAddresses": [contract_address]},
            )
            detailed = _items(parse_tool_result(raw_metadata))
            if detailed:
                metadata = detailed[0]
        except Exception as e:
            logger.warning(f"⚠️ Failed to get detailed metadata for {ticker}: {e}")
            metadata_error = str(e) or "Metadata fetch failed"
            analysis_depth = "basic"

        holder_info = None
        try:
            raw_holders = await manager.call(
                "getTokenHoldersByContract",
                network,
                nodit_network,
                {"contractAddress": contract_address, "rpp": TOP_HOLDERS, "withCount": True},
            )
            holders = parse_tool_result(raw_holders)
            if isinstance(holders, dict):
                holder_info = holders
                logger.info(f"👥 Found {holders.get('count') or 0} holders for {ticker}")
        except Exception as e:
            logger.warning(f"⚠️ Could not get holder info for {ticker}: {e}")

        return TokenAnalysisResult(
            symbol=ticker,
            network=network,
            contract_address=contract_address,
            search_result=best_match,
            metadata=metadata,
            holder_info=holder_info,
            success=True,
            analysis_depth=analysis_depth,
            confidence=confidence_label(best_score),
            score=best_score,
            searched=True,
            search_count=len(items),
            metadata_error=metadata_error,
        )

    except Exception as e:
        logger.error(f"❌ Token analysis failed for {ticker}: {e}")
        return TokenAnalysisResult(
            symbol=ticker,
            network=network,
            error=str(e) or "Analysis failed",
            searched=False,
            analysis_depth="failed",
        )
