"""
Tests for report rendering and the formatting helpers.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from scout.aggregation import build_report, compute_stats
from scout.models import (
    AnalysisOutcome,
    ClassificationResult,
    ContractAnalysisResult,
    DetectedEntities,
    NativeBalance,
    TokenAnalysisResult,
    WalletAnalysisResult,
)
from scout.reporting import (
    build_summary_text,
    format_date,
    format_token_supply,
    render_json,
    render_response,
    token_risk_level,
)

from conftest import ADDRESS

WEB3 = ClassificationResult(classification="web3", confidence=0.95)
NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_report(tokens=(), contracts=(), wallets=(), detected_tokens=None, connected=True):
    tokens, contracts, wallets = list(tokens), list(contracts), list(wallets)
    detected = DetectedEntities(
        tokens=detected_tokens if detected_tokens is not None else [t.symbol for t in tokens],
        contracts=[c.address for c in contracts],
        wallets=sorted({w.address for w in wallets}),
    )
    outcome = AnalysisOutcome(
        tokens=tokens,
        contracts=contracts,
        wallets=wallets,
        mcp_connected=connected,
        analysis_stats=compute_stats(tokens, contracts, wallets),
    )
    return build_report("query", WEB3, detected, outcome)


def test_format_token_supply():
    assert format_token_supply("1500000000000000000000000", 18) == "1.50M"
    assert format_token_supply(str(2 * 10 ** 12 * 10 ** 6), 6) == "2.00T"
    assert format_token_supply("999000000", 6) == "999"
    assert format_token_supply("12500", 0) == "12.50K"
    assert format_token_supply("not a number") == "Unknown"


def test_token_risk_level():
    recent = {"deployedAt": "2025-05-20T00:00:00Z"}
    assert token_risk_level(recent, {"count": 50}, now=NOW) == "🔴 High Risk (Recently deployed, Few holders)"
    assert token_risk_level({"deployedAt": "2025-01-01T00:00:00Z"}, {"count": 500}, now=NOW) == "🟢 Low Risk (Limited holders)"
    assert token_risk_level({"deployedAt": "2015-07-30T00:00:00Z"}, {"count": 1000000}, now=NOW) == "✅ Well-established"
    huge = {"totalSupply": str(10 ** 34), "decimals": 18}
    assert token_risk_level(huge, None, now=NOW) == "🟢 Low Risk (Extremely high supply)"


def test_format_date_accepts_iso_and_epoch():
    assert format_date("2015-07-30T15:26:13.000Z") == "2015-07-30"
    assert format_date(1438269973) == "2015-07-30"
    assert format_date(1438269973000) == "2015-07-30"
    assert format_date(None) is None


def test_token_rows():
    ok = TokenAnalysisResult(
        symbol="USDC",
        contract_address="0xusdc",
        metadata={"name": "USD Coin", "totalSupply": "5000000000000", "decimals": 6},
        holder_info={"count": 2500},
        success=True,
    )
    failed = TokenAnalysisResult(symbol="XYZ", error="Token not found in blockchain data")
    report = make_report(tokens=[ok, failed], detected_tokens=["USDC", "XYZ", "ABC"])
    rows = render_response(report)["results"]["tokens"]

    assert rows[0]["name"] == "USD Coin"
    assert rows[0]["contract"] == "0xusdc"
    assert rows[0]["type"] == "ERC20"
    assert rows[0]["total_supply"] == "5.00M"
    assert rows[0]["holders"] == 2500
    assert rows[1] == {"symbol": "XYZ", "error": "Token not found in blockchain data"}
    assert rows[2] == {"symbol": "ABC", "status": "detected"}


def test_wallets_grouped_by_address():
    wallets = [
        WalletAnalysisResult(
            address=ADDRESS,
            network="ethereum",
            type="Wallet (EOA)",
            native_balance=NativeBalance(raw="1", formatted="0.000000", symbol="ETH"),
            transaction_count=150,
            activity_level="Medium",
            success=True,
        ),
        WalletAnalysisResult(address=ADDRESS, network="base", error="boom"),
    ]
    response = render_response(make_report(wallets=wallets))
    grouped = response["results"]["wallets"]
    assert len(grouped) == 1
    assert set(grouped[0]["networks"]) == {"ethereum", "base"}
    assert grouped[0]["networks"]["ethereum"]["balance"] == {"amount": "0.000000", "symbol": "ETH"}
    assert grouped[0]["networks"]["ethereum"]["activity_level"] == "Medium"
    assert grouped[0]["networks"]["base"]["error"] == "boom"


def test_zero_transaction_count_renders_as_null():
    wallet = WalletAnalysisResult(address=ADDRESS, network="ethereum", success=True, transaction_count=0, activity_level="Very Low")
    entry = render_response(make_report(wallets=[wallet]))["results"]["wallets"][0]["networks"]["ethereum"]
    assert entry["transaction_count"] is None
    assert entry["activity_level"] == "Very Low"


def test_contract_rows():
    contract = ContractAnalysisResult(
        address=ADDRESS,
        network="ethereum",
        address_type="contract",
        contract_type="token",
        token_metadata=[{"name": "Pepe", "symbol": "PEPE", "totalSupply": str(420 * 10 ** 30), "decimals": 18}],
        token_holders={"count": 300000, "items": []},
    )
    contract.checks.is_contract = True
    row = render_response(make_report(contracts=[contract]))["results"]["contracts"][0]
    assert row["verified"] is True
    assert row["type"] == "token"
    assert row["token_metadata"]["supply"] == "420.00T"
    assert row["holders"] == 300000
    assert row["error"] is None


def test_status_and_summary_keys():
    offline = render_response(make_report(tokens=[TokenAnalysisResult(symbol="ETH", error="x", fallback=True)], connected=False))
    assert offline["status"] == "offline_mode"
    assert offline["data_quality"] == "⚠️ Limited (offline mode)"
    assert offline["analysis_summary"] == {"total_entities": 1, "successful": 0, "success_rate": 0}


def test_serialized_report_keeps_success_rate():
    tokens = [TokenAnalysisResult(symbol=s, success=True, metadata={"name": s}) for s in ("AAA", "BBB")]
    tokens.append(TokenAnalysisResult(symbol="CCC", error="Token not found in blockchain data"))
    report = make_report(tokens=tokens)
    parsed = json.loads(render_json(report))
    stats = report.analysis_stats
    assert parsed["analysis_summary"]["success_rate"] == round(stats.successful / stats.total * 100) == 67

    restored = type(report).model_validate_json(report.to_json())
    assert restored.analysis_stats.success_rate == 67


def test_summary_text_mentions_each_section():
    report = make_report(
        tokens=[TokenAnalysisResult(symbol="XYZ", error="Token not found in blockchain data")],
        wallets=[WalletAnalysisResult(address=ADDRESS, network="base", success=True, transaction_count=5, activity_level="Very Low")],
    )
    text = build_summary_text(report)
    assert "XYZ: ❌ Token not found" in text
    assert f"Address: {ADDRESS}" in text
    assert "Balance: 0.000000 ETH" in text
    assert "Activity: 5 transactions (Very Low activity)" in text
    assert "Success rate: 50%" in text
