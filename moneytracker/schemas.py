from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal, Dict


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire (ledger JSON shape)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


CutType = Literal["percent", "flat"]
TxnType = Literal["outgoing", "return"]
Direction = Literal["outgoing", "return", "unknown"]


class Employee(CamelModel):
    id: str
    name: str = ""
    cut_type: CutType = "percent"
    cut_value: float = 10.0


class Transaction(CamelModel):
    id: str
    type: TxnType
    employee_id: str = ""
    amount: float = Field(ge=0)
    date: str = ""
    time: str = ""
    mode: Optional[str] = None
    ref: Optional[str] = None
    source: str = ""
    note: str = ""
    cut_override: Optional[float] = None
    created_at: int = 0
    image_url: str = ""


class Ledger(CamelModel):
    employees: List[Employee] = Field(default_factory=list)
    transactions: List[Transaction] = Field(default_factory=list)


class EmployeeCreate(CamelModel):
    name: str = ""
    cut_type: Optional[CutType] = None
    cut_value: Optional[float] = None


class EmployeeUpdate(CamelModel):
    name: Optional[str] = None
    cut_type: Optional[CutType] = None
    cut_value: Optional[float] = None


class TransactionCreate(CamelModel):
    type: TxnType
    employee_id: str = ""
    amount: Optional[float] = None
    date: str = ""
    time: str = ""
    mode: Optional[str] = None
    ref: Optional[str] = None
    source: str = ""
    note: str = ""
    cut_override: Optional[float] = None
    image_url: str = ""


class TransactionUpdate(CamelModel):
    type: Optional[TxnType] = None
    employee_id: Optional[str] = None
    amount: Optional[float] = None
    date: Optional[str] = None
    time: Optional[str] = None
    mode: Optional[str] = None
    ref: Optional[str] = None
    source: Optional[str] = None
    note: Optional[str] = None
    cut_override: Optional[float] = None
    image_url: Optional[str] = None


class ParsedCandidate(CamelModel):
    amount: Optional[float] = None
    date: Optional[str] = None
    time: Optional[str] = None
    ref: Optional[str] = None
    mode: Optional[str] = None
    counterparty: Optional[str] = None
    direction: Direction = "unknown"
    employee_id: str = ""


class ParseTextRequest(CamelModel):
    text: str


class CandidateConfirm(CamelModel):
    candidate: ParsedCandidate
    type: Optional[TxnType] = None  # None: take it from the candidate direction
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    source: str = ""
    note: str = ""
    image_url: str = ""


class ScreenshotResult(CamelModel):
    filename: str
    candidate: Optional[ParsedCandidate] = None
    raw_text: str = ""
    image_url: str = ""
    error: Optional[str] = None


class StatementEntry(CamelModel):
    date: str = ""
    amount: float
    desc: str = ""
    ref: str = ""
    mode: str = ""


class OutgoingBreakdown(CamelModel):
    transaction: Transaction
    computed_cut: float
    expected_return: float


class EmployeeSummary(CamelModel):
    employee_id: str
    name: str
    cut_type: CutType
    cut_value: float
    outgoings: List[OutgoingBreakdown] = Field(default_factory=list)
    total_sent: float = 0.0
    total_cut: float = 0.0
    total_expected: float = 0.0


class OverallTotals(CamelModel):
    total_sent: float = 0.0
    total_expected: float = 0.0
    total_returned: float = 0.0
    overall_balance: float = 0.0


class SummaryResponse(CamelModel):
    employees: Dict[str, EmployeeSummary]
    totals: OverallTotals


class LedgerChange(CamelModel):
    action: str
    ids: List[str] = Field(default_factory=list)
    count: int = 0
    warnings: List[str] = Field(default_factory=list)


class LedgerResponse(CamelModel):
    workspace: str
    ledger: Ledger
    change: Optional[LedgerChange] = None
    warnings: List[str] = Field(default_factory=list)
