import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import AggregatedReport, ContractAnalysisResult, TokenAnalysisResult, WalletAnalysisResult
from .wallet_analysis import native_symbol


def format_token_supply(supply: Any, decimals: int = 18) -> str:
    """Human-readable whole-token supply with K/M/B/T suffixes."""
    try:
        whole = int(supply) // (10 ** int(decimals))
    except (TypeError, ValueError):
        return "Unknown"

    for threshold, suffix in ((10 ** 12, "T"), (10 ** 9, "B"), (10 ** 6, "M"), (10 ** 3, "K")):
        if whole >= threshold:
            return f"{whole / threshold:.2f}{suffix}"
    return f"{whole:,}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)):
            # Millisecond epochs are 13 digits
            seconds = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: Any) -> Optional[str]:
    parsed = parse_timestamp(value)
    return parsed.strftime("%Y-%m-%d") if parsed else None


def token_risk_level(
    metadata: Dict[str, Any],
    holder_info: Optional[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> str:
    """Heuristic risk label from deployment age, holder count and supply size."""
    now = now or datetime.now(timezone.utc)
    risk_score = 0
    issues: List[str] = []

    deployed = parse_timestamp(metadata.get("deployedAt"))
    if deployed:
        days_since = (now - deployed).total_seconds() / 86400
        if days_since < 30:
            risk_score += 3
            issues.append("Recently deployed")
        elif days_since < 365:
            risk_score += 1

    holder_count = (holder_info or {}).get("count")
    if holder_count:
        if holder_count < 100:
            risk_score += 2
            issues.append("Few holders")
        elif holder_count < 1000:
            risk_score += 1
            issues.append("Limited holders")

    if metadata.get("totalSupply") and metadata.get("decimals"):
        try:
            supply = int(metadata["totalSupply"]) // (10 ** int(metadata["decimals"]))
        except (TypeError, ValueError):
            supply = 0
        if supply > 10 ** 15:
            risk_score += 2
            issues.append("Extremely high supply")

    if risk_score >= 5:
        return f"🔴 High Risk ({', '.join(issues)})"
    if risk_score >= 3:
        return f"🟡 Medium Risk ({', '.join(issues)})"
    if risk_score >= 1:
        return f"🟢 Low Risk ({', '.join(issues)})"
    return "✅ Well-established"


def _token_row(symbol: str, result: Optional[TokenAnalysisResult]) -> Dict[str, Any]:
    if result and result.success and result.metadata:
        meta = result.metadata
        holder_info = result.holder_info or {}
        return {
            "symbol": symbol,
            "name": meta.get("name") or "Unknown",
            "contract": result.contract_address,
            "type": meta.get("type") or "ERC20",
            "total_supply": format_token_supply(meta["totalSupply"], meta.get("decimals") or 18)
            if meta.get("totalSupply") else None,
            "holders": holder_info.get("count") or None,
            "deployed": format_date(meta.get("deployedAt")),
            "risk_level": token_risk_level(meta, result.holder_info),
        }
    if result and result.error:
        return {"symbol": symbol, "error": result.error}
    return {"symbol": symbol, "status": "detected"}


def _contract_row(contract: ContractAnalysisResult) -> Dict[str, Any]:
    token_metadata = None
    if contract.token_metadata:
        meta = contract.token_metadata[0]
        token_metadata = {
            "name": meta.get("name"),
            "symbol": meta.get("symbol"),
            "supply": format_token_supply(meta["totalSupply"], meta["decimals"])
            if meta.get("totalSupply") and meta.get("decimals") else None,
            "deployed": format_date(meta.get("deployedAt")),
        }
    return {
        "address": contract.address,
        "network": contract.network,
        "address_type": contract.address_type,
        "type": contract.contract_type,
        "verified": contract.checks.is_contract,
        "token_metadata": token_metadata,
        "holders": (contract.token_holders or {}).get("count") or None,
        "error": contract.error,
    }


def _wallet_network_entry(wallet: WalletAnalysisResult) -> Dict[str, Any]:
    activity = wallet.recent_token_activity
    return {
        "balance": {
            "amount": wallet.native_balance.formatted,
            "symbol": wallet.native_balance.symbol,
        } if wallet.native_balance else None,
        "type": wallet.type,
        "activity_level": wallet.activity_level,
        "transaction_count": wallet.transaction_count or None,
        "recent_tokens": [t.symbol for t in activity.tokens[:3]] if activity else [],
        "error": wallet.error,
    }


def group_wallets(wallets: List[WalletAnalysisResult]) -> List[Dict[str, Any]]:
    grouped: Dict[str, Dict[str, Any]] = {}
    for wallet in wallets:
        entry = grouped.setdefault(wallet.address, {"address": wallet.address, "networks": {}})
        entry["networks"][wallet.network] = _wallet_network_entry(wallet)
    return list(grouped.values())


def render_response(report: AggregatedReport) -> Dict[str, Any]:
    """Wire shape returned to API clients."""
    response: Dict[str, Any] = {
        "query": report.query,
        "status": "live_data" if report.mcp_connected else "offline_mode",
        "data_quality": report.data_quality,
        "results": {},
    }

    if report.detected.tokens:
        by_symbol = {t.symbol: t for t in report.tokens}
        response["results"]["tokens"] = [
            _token_row(symbol, by_symbol.get(symbol)) for symbol in report.detected.tokens
        ]

    if report.contracts:
        response["results"]["contracts"] = [_contract_row(c) for c in report.contracts]

    if report.wallets:
        response["results"]["wallets"] = group_wallets(report.wallets)

    stats = report.analysis_stats
    if stats.total > 0:
        response["analysis_summary"] = {
            "total_entities": stats.total,
            "successful": stats.successful,
            "success_rate": stats.success_rate,
        }

    return response


def render_json(report: AggregatedReport) -> str:
    return json.dumps(render_response(report), indent=2, ensure_ascii=False)


def build_summary_text(report: AggregatedReport) -> str:
    """
    Generate a human-readable summary of the report.
    """
    summary = f"Query: {report.query}\n"
    summary += f"Data quality: {report.data_quality}\n"

    if report.detected.tokens:
        summary += "\n🪙 Token Analysis:\n"
        by_symbol = {t.symbol: t for t in report.tokens}
        for symbol in report.detected.tokens:
            row = _token_row(symbol, by_symbol.get(symbol))
            if "error" in row:
                summary += f"• {symbol}: ❌ {row['error']}\n"
            elif "status" in row:
                summary += f"• {symbol}: Token ticker detected\n"
            else:
                summary += f"• {symbol} ({row['name']})\n"
                summary += f"  - Contract: {row['contract']}\n"
                summary += f"  - Type: {row['type']}\n"
                if row["total_supply"]:
                    summary += f"  - Total Supply: {row['total_supply']} {symbol}\n"
                if row["holders"]:
                    summary += f"  - Holders: {row['holders']:,}\n"
                if row["deployed"]:
                    summary += f"  - Deployed: {row['deployed']}\n"
                summary += f"  - Risk Assessment: {row['risk_level']}\n"

    if report.contracts:
        summary += "\n📋 Smart Contract Analysis:\n"
        for contract in report.contracts:
            summary += f"• Contract: {contract.address}\n"
            summary += f"  - Network: {contract.network}\n"
            if contract.error:
                summary += f"  - ❌ Error: {contract.error}\n"
                continue
            summary += f"  - Contract Status: {'✅ Verified' if contract.checks.is_contract else '❌ Not a contract'}\n"
            if contract.contract_type:
                summary += f"  - Type: {contract.contract_type}\n"
            if contract.token_holders and contract.token_holders.get("count"):
                summary += f"  - Total Holders: {contract.token_holders['count']:,}\n"
            if contract.token_holders_error:
                summary += f"  - ⚠️ Some data unavailable: {contract.token_holders_error}\n"

    if report.wallets:
        summary += "\n👤 Wallet Address Analysis:\n"
        for group in group_wallets(report.wallets):
            summary += f"• Address: {group['address']}\n"
            for network, entry in group["networks"].items():
                summary += f"  - {network} Network:\n"
                if entry["error"]:
                    summary += f"    ❌ Error: {entry['error']}\n"
                    continue
                if entry["type"]:
                    summary += f"    Type: {entry['type']}\n"
                if entry["balance"]:
                    summary += f"    Balance: {entry['balance']['amount']} {entry['balance']['symbol']}\n"
                else:
                    summary += f"    Balance: 0.000000 {native_symbol(network)}\n"
                if entry["recent_tokens"]:
                    summary += f"    Recent Tokens: {', '.join(entry['recent_tokens'])}\n"
                if entry["transaction_count"] is not None:
                    summary += f"    Activity: {entry['transaction_count']} transactions ({entry['activity_level']} activity)\n"

    stats = report.analysis_stats
    if stats.total > 0:
        summary += "\n📊 Analysis Summary:\n"
        summary += f"• Total entities analyzed: {stats.total}\n"
        summary += f"• Successful analyses: {stats.successful}\n"
        summary += f"• Success rate: {stats.success_rate}%\n"

    return summary
