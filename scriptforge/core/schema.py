from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


STEP_SESSION = "Session"
STEP_INITIALIZING = "Initializing Forge"
STEP_GUIDELINES = "Fetching Guidelines"
STEP_GENERATING = "Generating Code"
STEP_INSTALLING = "Installing Dependencies"
STEP_SIMULATING = "Simulating Transactions"
STEP_FIXING = "Fixing"
STEP_ERROR = "Error"
STEP_CLOSE = "Close"


class StepRecord(BaseModel):
    title: str
    output: str


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class SessionData(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)


class ForgeRequest(BaseModel):
    intent: str
    from_address: str
    rpc_url: str | None = None
    session_id: str | None = None


class FixRequest(BaseModel):
    error: str
    temp_dir: str
    rpc_url: str | None = None


class ForgeTransactionDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    gas: str | None = None
    value: str = "0x0"
    input: str = "0x"
    nonce: str | None = None
    chainId: str | None = None


class ForgeTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    hash: str | None = None
    transactionType: str
    contractName: str | None = None
    contractAddress: str | None = None
    function: str | None = None
    arguments: list[str] | None = None
    transaction: ForgeTransactionDetails


class ForgeOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: list[ForgeTransaction]
    receipts: list[Any] = Field(default_factory=list)
    libraries: list[Any] = Field(default_factory=list)
    pending: list[Any] = Field(default_factory=list)
    returns: dict[str, Any] = Field(default_factory=dict)
    timestamp: int | None = None
    chain: int | None = None
    commit: str | None = None


class TransactionDetails(BaseModel):
    to: str
    function: str
    arguments: list[str] = Field(default_factory=list)
    value: str
    input_data: str
