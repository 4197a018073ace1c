"""
Analysis phase and result aggregation.

run_analysis drives every analyzer through one ConnectionManager and always
returns a result record for every detected entity, even when the provider is
unreachable. build_report turns that outcome into the immutable
AggregatedReport the pipeline responds with.
"""
import logging
from typing import List, Sequence

from .config import WALLET_NETWORKS
from .connection import ConnectionManager
from .contract_analysis import analyze_contract
from .models import (
    AggregatedReport,
    AnalysisOutcome,
    AnalysisStats,
    ClassificationResult,
    ContractAnalysisResult,
    DetectedEntities,
    KindStats,
    TokenAnalysisResult,
    WalletAnalysisResult,
)
from .token_analysis import analyze_token
from .wallet_analysis import analyze_wallet

logger = logging.getLogger(__name__)

NON_WEB3_RESPONSE = "Error: Non-Web3 query. This API handles cryptocurrency and blockchain data only."
TOKEN_NOT_FOUND_RESPONSE = (
    "Error: Token not found. Available tokens: BTC, ETH, USDC, USDT, SOL, MATIC, WETH. "
    "Use external API for other tokens."
)

HIGH_QUALITY = "✅ High quality"
OFFLINE_QUALITY = "⚠️ Limited (offline mode)"


def _kind_stats(results: Sequence) -> KindStats:
    return KindStats(total=len(results), successful=sum(1 for r in results if r.succeeded))


def compute_stats(
    tokens: Sequence[TokenAnalysisResult],
    contracts: Sequence[ContractAnalysisResult],
    wallets: Sequence[WalletAnalysisResult],
) -> AnalysisStats:
    token_stats = _kind_stats(tokens)
    contract_stats = _kind_stats(contracts)
    wallet_stats = _kind_stats(wallets)
    return AnalysisStats(
        total=token_stats.total + contract_stats.total + wallet_stats.total,
        successful=token_stats.successful + contract_stats.successful + wallet_stats.successful,
        tokens=token_stats,
        contracts=contract_stats,
        wallets=wallet_stats,
    )


def data_quality_label(mcp_connected: bool, stats: AnalysisStats) -> str:
    if not mcp_connected:
        return OFFLINE_QUALITY
    if stats.successful < stats.total:
        return f"⚠️ Partial ({stats.successful}/{stats.total} successful)"
    return HIGH_QUALITY


def fallback_outcome(detected: DetectedEntities, error: str, total_failure: bool = False) -> AnalysisOutcome:
    """One error record per detected entity (wallets once per wallet network)."""
    tokens = [
        TokenAnalysisResult(symbol=ticker, network=detected.network, error=error, fallback=True)
        for ticker in detected.tokens
    ]
    contracts = [
        ContractAnalysisResult(address=address, network=detected.network, error=error, fallback=True)
        for address in detected.contracts
    ]
    wallets = [
        WalletAnalysisResult(address=address, network=network, error=error, fallback=True)
        for address in detected.wallets
        for network in WALLET_NETWORKS
    ]
    stats = compute_stats(tokens, contracts, wallets)
    if total_failure:
        stats = stats.model_copy(update={"error": "MCP analysis failed completely"})
    return AnalysisOutcome(
        tokens=tokens,
        contracts=contracts,
        wallets=wallets,
        mcp_connected=False,
        analysis_stats=stats,
    )


def resolve_wallet_candidates(
    detected: DetectedEntities, contracts: Sequence[ContractAnalysisResult]
) -> List[str]:
    """Wallet candidates minus the addresses confirmed to hold contract code."""
    confirmed = {c.address for c in contracts if c.checks.is_contract}
    return [address for address in detected.wallets if address not in confirmed]


async def run_analysis(detected: DetectedEntities, manager: ConnectionManager) -> AnalysisOutcome:
    logger.info("🔗 Starting MCP analysis")
    logger.info(f"🪙 Tokens to analyze: {detected.tokens}")
    logger.info(f"📋 Contracts to analyze: {detected.contracts}")
    logger.info(f"👤 Wallets to analyze: {detected.wallets}")

    try:
        connection = await manager.connect()
        if not connection.success:
            logger.error(f"❌ MCP connection failed: {connection.error}")
            return fallback_outcome(detected, connection.error or "MCP connection failed")

        network = detected.network
        logger.info(f"🌐 Using network: {network}")

        tokens: List[TokenAnalysisResult] = []
        for ticker in detected.tokens:
            tokens.append(await analyze_token(ticker, manager, network))

        contracts: List[ContractAnalysisResult] = []
        for address in detected.contracts:
            contracts.append(await analyze_contract(address, manager, network))

        wallets: List[WalletAnalysisResult] = []
        for address in resolve_wallet_candidates(detected, contracts):
            for wallet_network in WALLET_NETWORKS:
                wallets.append(await analyze_wallet(address, manager, wallet_network))

        stats = compute_stats(tokens, contracts, wallets)
        logger.info(
            f"✅ MCP analysis complete - Tokens: {stats.tokens.successful}/{stats.tokens.total} | "
            f"Contracts: {stats.contracts.successful}/{stats.contracts.total} | "
            f"Wallets: {stats.wallets.successful}/{stats.wallets.total}"
        )
        return AnalysisOutcome(
            tokens=tokens,
            contracts=contracts,
            wallets=wallets,
            mcp_connected=True,
            analysis_stats=stats,
            api_call_stats=manager.stats,
        )

    except Exception as e:
        logger.error(f"❌ MCP analysis failed: {e}")
        return fallback_outcome(detected, str(e) or "Analysis failed", total_failure=True)

    finally:
        await manager.close()


def build_report(
    query: str,
    classification: ClassificationResult,
    detected: DetectedEntities,
    outcome: AnalysisOutcome,
) -> AggregatedReport:
    return AggregatedReport(
        query=query,
        classification=classification,
        detected=detected,
        tokens=outcome.tokens,
        contracts=outcome.contracts,
        wallets=outcome.wallets,
        mcp_connected=outcome.mcp_connected,
        analysis_stats=outcome.analysis_stats,
        data_quality=data_quality_label(outcome.mcp_connected, outcome.analysis_stats),
        api_call_stats=outcome.api_call_stats,
    )
