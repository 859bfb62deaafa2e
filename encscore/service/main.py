import logging
import os
from fastapi import FastAPI, HTTPException, Request
from ..config import (
    CHAIN_ID, DEPLOYER_ADDRESS, INPUT_KID, INPUT_SIGNING_KEY_PATH, TRUST_STORE_PATH, ACCOUNT_KEYS_PATH,
    SUBMIT_RPM, DECRYPT_RPM, REQUEST_FRESHNESS_SECONDS, MAX_CLOCK_SKEW_SECONDS,
    initial_threshold, validate_config, is_production, invalidate_config_cache,
)
from ..devnet import LocalDevnet
from ..errors import EncryptedCreditScoreError, ErrorCode
from ..keys import EphemeralKeyProvider, FileKeyProvider
from ..logging_config import audit_log, set_transaction_id
from ..validation import ValidationError, decode_hex_bytes, encode_hex_bytes, validate_address
from .auth import (
    ACTION_DECRYPT, ACTION_SET_THRESHOLD, ACTION_SUBMIT_CREDIT_DATA,
    AccountKeyRegistry, RequestAuthenticator, RequestAuthError,
)
from .models import (
    SubmitCreditDataRequest, SetThresholdRequest, EncryptInputsRequest, DecryptRequest,
    HandleResponse, EncryptedInputResponse, SubmissionResponse, DecryptResponse,
)
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

app = FastAPI(title="Encrypted Credit Score Node")

STATUS_BY_CODE = {
    ErrorCode.INVALID_PROOF: 400,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.NO_RECORD: 404,
    ErrorCode.PROTOCOL_MISMATCH: 409,
    ErrorCode.MALFORMED_REFERENCE: 422,
}

def get_key_provider():
    present = validate_config()
    if all(present.values()):
        return FileKeyProvider(signing_key_path=INPUT_SIGNING_KEY_PATH, trust_store_path=TRUST_STORE_PATH)
    if is_production():
        raise RuntimeError("input attestation key material is required in production")
    logger.warning("no input attestation keys on disk, using an ephemeral key")
    return EphemeralKeyProvider(kid=INPUT_KID)

def get_account_registry():
    if os.path.exists(ACCOUNT_KEYS_PATH):
        return AccountKeyRegistry.from_file(ACCOUNT_KEYS_PATH)
    if is_production():
        raise RuntimeError("an account key registry is required in production")
    logger.warning("no account key registry on disk, every signed request will be refused until keys are registered")
    return AccountKeyRegistry()

def http_error(e: Exception) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(422, "INVALID_" + e.field.upper().replace(".", "_"))
    return HTTPException(STATUS_BY_CODE[e.code], e.code.value)

submit_limiter = RateLimiter(SUBMIT_RPM)
decrypt_limiter = RateLimiter(DECRYPT_RPM)
NET = None
CONTRACT = None
AUTH = None

@app.on_event("startup")
def _startup():
    global NET, CONTRACT, AUTH
    NET = LocalDevnet(chain_id=CHAIN_ID, key_provider=get_key_provider())
    CONTRACT = NET.deploy(DEPLOYER_ADDRESS, threshold=initial_threshold())
    AUTH = RequestAuthenticator(get_account_registry(), REQUEST_FRESHNESS_SECONDS, MAX_CLOCK_SKEW_SECONDS)

def reset_node():
    """Fresh devnet, contract and nonce store; clears rate limit windows and cached key files."""
    submit_limiter.reset()
    decrypt_limiter.reset()
    invalidate_config_cache()
    _startup()

def _rate_limit(limiter: RateLimiter, sender: str, endpoint: str):
    result = limiter.check(sender.lower())
    if not result.allowed:
        audit_log.rate_limit_exceeded(sender, endpoint)
        raise HTTPException(429, "RATE_LIMIT", headers={"Retry-After": str(int(result.retry_after or 0) + 1)})

def _authenticate(action: str, address: str, req, endpoint: str):
    # The claimed address reaches the contract only after this passes
    try:
        AUTH.authenticate(action, address, CONTRACT.address, req.model_dump(exclude={"auth"}), req.auth)
    except RequestAuthError as e:
        audit_log.request_auth_denied(address, endpoint, e.reason)
        raise HTTPException(403, e.reason)

@app.middleware("http")
async def transaction_id_middleware(request: Request, call_next):
    tid = set_transaction_id(request.headers.get("X-Transaction-ID") or None)
    response = await call_next(request)
    response.headers["X-Transaction-ID"] = tid
    return response

@app.get("/protocol-id")
def protocol_id():
    return {
        "chain_id": CONTRACT.chain_id,
        "protocol_id": CONTRACT.confidential_protocol_id(),
        "contract_address": CONTRACT.address,
    }

@app.get("/threshold", response_model=HandleResponse)
def get_threshold():
    return HandleResponse(handle=CONTRACT.get_threshold().handle)

@app.post("/threshold", response_model=HandleResponse)
def set_threshold(req: SetThresholdRequest):
    try:
        sender = validate_address(req.sender, "sender")
    except ValidationError as e:
        raise http_error(e)
    _authenticate(ACTION_SET_THRESHOLD, sender, req, "/threshold")

    try:
        proof = decode_hex_bytes(req.input_proof, "input_proof")
        CONTRACT.set_threshold(sender, req.handle, proof)
    except (EncryptedCreditScoreError, ValidationError) as e:
        raise http_error(e)
    return HandleResponse(handle=CONTRACT.get_threshold().handle)

@app.post("/credit-data", response_model=SubmissionResponse)
def submit_credit_data(req: SubmitCreditDataRequest):
    try:
        sender = validate_address(req.sender, "sender")
    except ValidationError as e:
        raise http_error(e)
    _rate_limit(submit_limiter, sender, "/credit-data")
    _authenticate(ACTION_SUBMIT_CREDIT_DATA, sender, req, "/credit-data")

    try:
        CONTRACT.submit_credit_data(
            sender,
            req.income.handle, decode_hex_bytes(req.income.input_proof, "income.input_proof"),
            req.debt_ratio.handle, decode_hex_bytes(req.debt_ratio.input_proof, "debt_ratio.input_proof"),
            req.repayment_score.handle,
            decode_hex_bytes(req.repayment_score.input_proof, "repayment_score.input_proof"),
        )
    except (EncryptedCreditScoreError, ValidationError) as e:
        raise http_error(e)

    return SubmissionResponse(
        status="ACCEPTED",
        credit_score=CONTRACT.get_credit_score(sender).handle,
        qualification=CONTRACT.get_qualification_status(sender).handle,
    )

@app.get("/accounts/{address}/has-credit-data")
def has_credit_data(address: str):
    try:
        return {"address": address.lower(), "has_credit_data": CONTRACT.has_credit_data(address)}
    except ValidationError as e:
        raise http_error(e)

@app.get("/accounts/{address}/credit-score", response_model=HandleResponse)
def get_credit_score(address: str):
    try:
        return HandleResponse(handle=CONTRACT.get_credit_score(address).handle)
    except (EncryptedCreditScoreError, ValidationError) as e:
        raise http_error(e)

@app.get("/accounts/{address}/qualification", response_model=HandleResponse)
def get_qualification(address: str):
    try:
        return HandleResponse(handle=CONTRACT.get_qualification_status(address).handle)
    except (EncryptedCreditScoreError, ValidationError) as e:
        raise http_error(e)

@app.post("/inputs", response_model=EncryptedInputResponse)
def encrypt_inputs(req: EncryptInputsRequest):
    # Development gateway: plaintexts go straight to the mock backend
    if is_production():
        raise HTTPException(404, "INPUT_GATEWAY_DISABLED")
    try:
        builder = NET.create_encrypted_input(req.contract_address or CONTRACT.address, req.user_address)
        for value in req.values:
            builder.add32(value)
        enc = builder.encrypt()
    except ValidationError as e:
        raise http_error(e)
    return EncryptedInputResponse(
        contract_address=builder.contract_address,
        user_address=builder.user_address,
        handles=list(enc.handles),
        input_proof=encode_hex_bytes(enc.input_proof),
    )

@app.post("/decrypt", response_model=DecryptResponse)
def decrypt(req: DecryptRequest):
    try:
        principal = validate_address(req.principal, "principal")
    except ValidationError as e:
        raise http_error(e)
    _rate_limit(decrypt_limiter, principal, "/decrypt")
    _authenticate(ACTION_DECRYPT, principal, req, "/decrypt")

    try:
        value = NET.user_decrypt(req.handle, principal, CONTRACT.address)
    except EncryptedCreditScoreError as e:
        raise http_error(e)
    return DecryptResponse(handle=req.handle.lower(), value=value)
