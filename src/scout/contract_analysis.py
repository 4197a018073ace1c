import logging
from typing import Any

from .connection import ConnectionManager, parse_tool_result
from .detection import network_config
from .models import ContractAnalysisResult

logger = logging.getLogger(__name__)

TOP_HOLDERS = 10


def _is_contract(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("result") is True


async def analyze_contract(address: str, manager: ConnectionManager, network: str) -> ContractAnalysisResult:
    """
    Check whether an address is a contract and, for token contracts, pull
    metadata and holders. Addresses without code come back with
    address_type="wallet" so the caller can route them to wallet analysis.
    """
    logger.info(f"📋 Analyzing contract address: {address}")
    nodit_network = network_config(network)
    analysis = ContractAnalysisResult(address=address, network=network)

    try:
        raw_check = await manager.call("isContract", network, nodit_network, {"address": address})
        try:
            check = parse_tool_result(raw_check)
        except ValueError as e:
            logger.warning(f"⚠️ Failed to parse isContract JSON: {e}")
            check = {"result": False}

        analysis.checks.is_contract = _is_contract(check)
        if not analysis.checks.is_contract:
            analysis.address_type = "wallet"
            analysis.note = "This is a wallet address, not a smart contract"
            return analysis

        analysis.address_type = "contract"

        try:
            raw_metadata = await manager.call(
                "getTokenContractMetadataByContracts",
                network,
                nodit_network,
                {"contractAddresses": [address]},
            )
            metadata = parse_tool_result(raw_metadata)
            if isinstance(metadata, dict):
                metadata = metadata.get("items") or []

            if metadata:
                analysis.token_metadata = list(metadata)
                analysis.checks.has_metadata = True
                analysis.contract_type = "token"

                try:
                    raw_holders = await manager.call(
                        "getTokenHoldersByContract",
                        network,
                        nodit_network,
                        {"contractAddress": address, "rpp": TOP_HOLDERS, "withCount": True},
                    )
                    holders = parse_tool_result(raw_holders)
                    if isinstance(holders, dict) and holders.get("items"):
                        analysis.token_holders = holders
                        analysis.checks.has_holders = True
                except Exception as e:
                    logger.warning(f"⚠️ Failed to get token holders for {address}: {e}")
                    analysis.token_holders_error = str(e) or "Holders fetch failed"
            else:
                analysis.contract_type = "other"
                analysis.note = "Contract detected but not a standard token contract"

        except Exception as e:
            logger.warning(f"⚠️ Failed to get token metadata for {address}: {e}")
            analysis.contract_type = "unknown"
            analysis.error = str(e) or "Token metadata fetch failed"

        return analysis

    except Exception as e:
        logger.error(f"❌ Contract analysis failed for {address}: {e}")
        analysis.error = str(e) or "Analysis failed"
        return analysis
