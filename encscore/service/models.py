from pydantic import BaseModel, Field
from typing import List, Optional

class RequestAuth(BaseModel):
    issued_at: int
    nonce: str = Field(min_length=8, max_length=128)
    sig_b64: str = Field(description="Ed25519 signature by the acting account")

class EncryptedValueIn(BaseModel):
    handle: str
    input_proof: str = Field(description="hex-encoded input proof")

class SubmitCreditDataRequest(BaseModel):
    sender: str
    income: EncryptedValueIn
    debt_ratio: EncryptedValueIn
    repayment_score: EncryptedValueIn
    auth: Optional[RequestAuth] = None

class SetThresholdRequest(BaseModel):
    sender: str
    handle: str
    input_proof: str
    auth: Optional[RequestAuth] = None

class EncryptInputsRequest(BaseModel):
    user_address: str
    values: List[int] = Field(min_length=1)
    contract_address: Optional[str] = None

class DecryptRequest(BaseModel):
    principal: str
    handle: str
    auth: Optional[RequestAuth] = None

class HandleResponse(BaseModel):
    handle: str

class EncryptedInputResponse(BaseModel):
    contract_address: str
    user_address: str
    handles: List[str]
    input_proof: str

class SubmissionResponse(BaseModel):
    status: str
    credit_score: str
    qualification: str

class DecryptResponse(BaseModel):
    handle: str
    value: int
