import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .connection import ConnectionManager, parse_tool_result
from .detection import network_config
from .models import NativeBalance, TokenActivity, TokenActivityItem, WalletAnalysisResult

logger = logging.getLogger(__name__)

EOA = "Wallet (EOA)"
CONTRACT = "contract"
TRANSFER_LIMIT = 50
MAX_ACTIVITY_TOKENS = 10
WEI_PER_NATIVE = Decimal(10) ** 18


def native_symbol(network: str) -> str:
    return "MATIC" if network == "polygon" else "ETH"


def activity_level(transaction_count: int) -> str:
    if transaction_count > 1000:
        return "High"
    if transaction_count > 100:
        return "Medium"
    if transaction_count > 10:
        return "Low"
    return "Very Low"


def _to_int(value: Any) -> int:
    if isinstance(value, str) and value.lower().startswith("0x"):
        return int(value, 16)
    return int(value)


def format_native_balance(raw: Any, network: str) -> NativeBalance:
    """Convert a wei amount into the chain's native unit with 6 decimals."""
    amount = Decimal(_to_int(raw)) / WEI_PER_NATIVE
    return NativeBalance(raw=str(raw), formatted=f"{amount:.6f}", symbol=native_symbol(network))


def summarize_token_activity(transfers: List[Dict[str, Any]]) -> Optional[TokenActivity]:
    if not transfers:
        return None

    first_seen: Dict[str, Dict[str, Any]] = {}
    for transfer in transfers:
        contract = transfer.get("contractAddress")
        if not contract and isinstance(transfer.get("contract"), dict):
            contract = transfer["contract"].get("address")
        if contract and contract not in first_seen:
            first_seen[contract] = transfer

    tokens = []
    for contract, transfer in list(first_seen.items())[:MAX_ACTIVITY_TOKENS]:
        info = transfer.get("contract") if isinstance(transfer.get("contract"), dict) else transfer
        tokens.append(TokenActivityItem(
            contract_address=contract,
            symbol=info.get("symbol") or "Unknown",
            name=info.get("name") or "Unknown Token",
        ))

    return TokenActivity(transfer_count=len(transfers), unique_tokens=len(tokens), tokens=tokens)


async def analyze_wallet(address: str, manager: ConnectionManager, network: str) -> WalletAnalysisResult:
    logger.info(f"👤 Analyzing wallet address: {address} on {network}")
    nodit_network = network_config(network)

    try:
        wallet = WalletAnalysisResult(address=address, network=network)

        # 1. Account type and balance
        try:
            account = parse_tool_result(
                await manager.call("getAccount", network, nodit_network, {"address": address})
            )
            if isinstance(account, dict):
                wallet.type = account.get("type") or EOA
                wallet.is_contract = wallet.type == CONTRACT
                if account.get("balance") is not None:
                    wallet.native_balance = format_native_balance(account["balance"], network)
                    logger.info(f"💰 Native balance: {wallet.native_balance.formatted} {wallet.native_balance.symbol}")
        except Exception as e:
            logger.warning(f"⚠️ getAccount failed for {address}, trying alternative methods: {e}")
            wallet.account_error = str(e) or "Account lookup failed"
            try:
                check = parse_tool_result(
                    await manager.call("isContract", network, nodit_network, {"address": address})
                )
                wallet.is_contract = isinstance(check, dict) and check.get("result") is True
            except Exception as contract_error:
                logger.warning(f"⚠️ isContract also failed: {contract_error}")
                wallet.is_contract = False
            wallet.type = CONTRACT if wallet.is_contract else EOA

        # 2. Dedicated balance endpoint
        if wallet.native_balance is None:
            try:
                balance = parse_tool_result(
                    await manager.call("getBalance", network, nodit_network, {"address": address})
                )
                if isinstance(balance, dict) and balance.get("balance") is not None:
                    wallet.native_balance = format_native_balance(balance["balance"], network)
                    logger.info(
                        f"💰 Native balance (separate call): {wallet.native_balance.formatted} {wallet.native_balance.symbol}"
                    )
            except Exception as e:
                logger.warning(f"⚠️ Could not get native balance for {address}: {e}")
                wallet.balance_error = "Balance lookup failed"

        # 3. Recent token activity
        try:
            transfers = parse_tool_result(
                await manager.call(
                    "getTokenTransfers", network, nodit_network, {"address": address, "limit": TRANSFER_LIMIT}
                )
            )
            if isinstance(transfers, dict):
                rows = transfers.get("transfers") or transfers.get("items") or []
                wallet.recent_token_activity = summarize_token_activity(rows)
                if wallet.recent_token_activity:
                    logger.info(
                        f"📋 Found {wallet.recent_token_activity.unique_tokens} unique tokens "
                        f"from {wallet.recent_token_activity.transfer_count} recent transfers"
                    )
        except Exception as e:
            logger.warning(f"⚠️ Could not get token transfers for {address}: {e}")
            wallet.token_error = "Token activity lookup failed"

        # 4. Transaction count
        try:
            tx_count = parse_tool_result(
                await manager.call("getTransactionCount", network, nodit_network, {"address": address})
            )
            if isinstance(tx_count, dict) and tx_count.get("count") is not None:
                wallet.transaction_count = int(tx_count["count"])
                wallet.activity_level = activity_level(wallet.transaction_count)
                logger.info(f"📊 Transaction count: {wallet.transaction_count} ({wallet.activity_level} activity)")
        except Exception as e:
            logger.warning(f"⚠️ Could not get transaction count for {address}: {e}")
            wallet.transaction_count_error = "Transaction count lookup failed"

        wallet.success = True
        return wallet

    except Exception as e:
        logger.error(f"❌ Wallet analysis failed for {address}: {e}")
        return WalletAnalysisResult(
            address=address,
            network=network,
            error=str(e) or "Wallet analysis failed",
            success=False,
        )
