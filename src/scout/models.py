from typing import List, Optional, Dict, Any, Literal, Union
from datetime import datetime, timezone
from pydantic import BaseModel, Field, ConfigDict


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str  # "user" or "assistant"
    content: str


class Query(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    history: List[ChatMessage] = Field(default_factory=list)


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    classification: Literal["web3", "non-web3"]
    confidence: float = Field(..., ge=0.0, le=1.0)

    @property
    def is_web3(self) -> bool:
        return self.classification == "web3"


class DetectedEntities(BaseModel):
    model_config = ConfigDict(frozen=True)

    tokens: List[str] = Field(default_factory=list)
    contracts: List[str] = Field(default_factory=list)
    wallets: List[str] = Field(default_factory=list)
    network: str = "ethereum"

    @property
    def is_empty(self) -> bool:
        return not (self.tokens or self.contracts or self.wallets)


class ConnectResult(BaseModel):
    success: bool
    error: Optional[str] = None


class ApiCallStats(BaseModel):
    """Running counters for tool calls. Updates return a new snapshot."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    successful: int = 0
    failed: int = 0
    avg_response_time_ms: float = 0.0

    def record_success(self, elapsed_ms: float) -> "ApiCallStats":
        successful = self.successful + 1
        avg = (self.avg_response_time_ms * (successful - 1) + elapsed_ms) / successful
        return self.model_copy(update={
            "total": self.total + 1,
            "successful": successful,
            "avg_response_time_ms": avg,
        })

    def record_failure(self) -> "ApiCallStats":
        return self.model_copy(update={
            "total": self.total + 1,
            "failed": self.failed + 1,
        })


class ConnectionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    connected: bool = False
    attempts: int = 0
    stats: ApiCallStats = Field(default_factory=ApiCallStats)


class TokenAnalysisResult(BaseModel):
    symbol: str
    network: Optional[str] = None
    contract_address: Optional[str] = None
    search_result: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    holder_info: Optional[Dict[str, Any]] = None
    success: bool = False
    analysis_depth: Optional[Literal["comprehensive", "basic", "failed"]] = None
    confidence: Optional[Literal["high", "medium", "low"]] = None
    score: Optional[float] = None
    searched: Optional[bool] = None
    search_count: Optional[int] = None
    metadata_error: Optional[str] = None
    error: Optional[str] = None
    fallback: bool = False
    timestamp: str = Field(default_factory=_utc_now)

    @property
    def succeeded(self) -> bool:
        return self.success is True


class ContractChecks(BaseModel):
    is_contract: bool = False
    has_metadata: bool = False
    has_holders: bool = False


class ContractAnalysisResult(BaseModel):
    address: str
    network: str
    checks: ContractChecks = Field(default_factory=ContractChecks)
    address_type: Optional[Literal["contract", "wallet"]] = None
    contract_type: Optional[Literal["token", "other", "unknown"]] = None
    token_metadata: List[Dict[str, Any]] = Field(default_factory=list)
    token_holders: Optional[Dict[str, Any]] = None
    token_holders_error: Optional[str] = None
    note: Optional[str] = None
    error: Optional[str] = None
    fallback: bool = False
    timestamp: str = Field(default_factory=_utc_now)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class NativeBalance(BaseModel):
    raw: str
    formatted: str
    symbol: str


class TokenActivityItem(BaseModel):
    contract_address: str
    symbol: str = "Unknown"
    name: str = "Unknown Token"


class TokenActivity(BaseModel):
    transfer_count: int
    unique_tokens: int
    tokens: List[TokenActivityItem] = Field(default_factory=list)


class WalletAnalysisResult(BaseModel):
    address: str
    network: str
    type: Optional[str] = None
    is_contract: Optional[bool] = None
    native_balance: Optional[NativeBalance] = None
    recent_token_activity: Optional[TokenActivity] = None
    transaction_count: Optional[int] = None
    activity_level: Optional[str] = None
    account_error: Optional[str] = None
    balance_error: Optional[str] = None
    token_error: Optional[str] = None
    transaction_count_error: Optional[str] = None
    success: bool = False
    error: Optional[str] = None
    fallback: bool = False
    timestamp: str = Field(default_factory=_utc_now)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class KindStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    successful: int = 0


class AnalysisStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    successful: int = 0
    tokens: KindStats = Field(default_factory=KindStats)
    contracts: KindStats = Field(default_factory=KindStats)
    wallets: KindStats = Field(default_factory=KindStats)
    error: Optional[str] = None

    @property
    def success_rate(self) -> int:
        if not self.total:
            return 0
        return round(self.successful / self.total * 100)


class AnalysisOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    tokens: List[TokenAnalysisResult] = Field(default_factory=list)
    contracts: List[ContractAnalysisResult] = Field(default_factory=list)
    wallets: List[WalletAnalysisResult] = Field(default_factory=list)
    mcp_connected: bool = False
    analysis_stats: AnalysisStats = Field(default_factory=AnalysisStats)
    api_call_stats: ApiCallStats = Field(default_factory=ApiCallStats)


class AggregatedReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    classification: ClassificationResult
    detected: DetectedEntities
    tokens: List[TokenAnalysisResult] = Field(default_factory=list)
    contracts: List[ContractAnalysisResult] = Field(default_factory=list)
    wallets: List[WalletAnalysisResult] = Field(default_factory=list)
    mcp_connected: bool = False
    analysis_stats: AnalysisStats = Field(default_factory=AnalysisStats)
    data_quality: str
    api_call_stats: ApiCallStats = Field(default_factory=ApiCallStats)

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)


class PipelineContext(BaseModel):
    """Snapshot handed from one pipeline state to the next."""

    model_config = ConfigDict(frozen=True)

    query: Query
    classification: Optional[ClassificationResult] = None
    detected: Optional[DetectedEntities] = None
    report: Optional[AggregatedReport] = None
    output: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)


class PipelineResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    output: str
    messages: List[ChatMessage]
    report: Optional[AggregatedReport] = None
    classification: Optional[ClassificationResult] = None


ToolResult = Union[Dict[str, Any], List[Any], str, None]
