import time

import pytest
from fastapi.testclient import TestClient
from nacl.signing import SigningKey

from encscore.config import DEPLOYER_ADDRESS, SUBMIT_RPM
from encscore.service import main as node
from encscore.service.auth import (
    ACTION_DECRYPT, ACTION_SET_THRESHOLD, ACTION_SUBMIT_CREDIT_DATA, sign_request,
)
from encscore.service.main import app

client = TestClient(app)

ALICE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
BOB = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"
UNREGISTERED = "0x" + "ab" * 20

KEYS = {address: SigningKey.generate() for address in (DEPLOYER_ADDRESS, ALICE, BOB)}

@pytest.fixture(autouse=True)
def accounts(_reset_node):
    for address, key in KEYS.items():
        node.AUTH.registry.register(address, key.verify_key)

def contract_address():
    return client.get("/protocol-id").json()["contract_address"]

def signed(action, address, body, key=None, **kwargs):
    auth = sign_request(key or KEYS[address], action, address, contract_address(), body, **kwargs)
    return dict(body, auth=auth)

def encrypt(user, *values):
    r = client.post("/inputs", json={"user_address": user, "values": list(values)})
    assert r.status_code == 200, r.text
    return r.json()

def credit_data_body(sender, enc):
    proof = enc["input_proof"]
    return {
        "sender": sender,
        "income": {"handle": enc["handles"][0], "input_proof": proof},
        "debt_ratio": {"handle": enc["handles"][1], "input_proof": proof},
        "repayment_score": {"handle": enc["handles"][2], "input_proof": proof},
    }

def submit(user, enc, sender=None, key=None):
    sender = sender or user
    return client.post("/credit-data", json=signed(ACTION_SUBMIT_CREDIT_DATA, sender, credit_data_body(sender, enc), key))

def set_threshold(sender, enc, key=None):
    body = {"sender": sender, "handle": enc["handles"][0], "input_proof": enc["input_proof"]}
    return client.post("/threshold", json=signed(ACTION_SET_THRESHOLD, sender, body, key))

def decrypt(principal, handle, key=None):
    body = {"principal": principal, "handle": handle}
    return client.post("/decrypt", json=signed(ACTION_DECRYPT, principal, body, key))

# SV-01: Protocol id of the hosted network
def test_sv01_protocol_id():
    r = client.get("/protocol-id")
    assert r.status_code == 200
    body = r.json()
    assert body["chain_id"] == 31337
    assert body["protocol_id"] == 31337
    assert body["contract_address"] == node.CONTRACT.address

# SV-02: Submit, then decrypt score and qualification as the submitter
def test_sv02_submit_and_decrypt():
    r = submit(ALICE, encrypt(ALICE, 50000, 30, 85))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ACCEPTED"

    assert decrypt(ALICE, body["credit_score"]).json()["value"] == 80
    assert decrypt(ALICE, body["qualification"]).json()["value"] == 1

# SV-03: Resubmission is cumulative
def test_sv03_resubmission():
    submit(ALICE, encrypt(ALICE, 50000, 30, 85))
    body = submit(ALICE, encrypt(ALICE, 50000, 30, 85)).json()
    assert decrypt(ALICE, body["credit_score"]).json()["value"] == 84

# SV-04: Existence flag and query endpoints
def test_sv04_account_queries():
    r = client.get(f"/accounts/{ALICE}/has-credit-data")
    assert r.json()["has_credit_data"] is False

    body = submit(ALICE, encrypt(ALICE, 50000, 30, 85)).json()

    assert client.get(f"/accounts/{ALICE}/has-credit-data").json()["has_credit_data"] is True
    assert client.get(f"/accounts/{ALICE}/credit-score").json()["handle"] == body["credit_score"]
    assert client.get(f"/accounts/{ALICE}/qualification").json()["handle"] == body["qualification"]

# SV-05: Missing record -> 404
def test_sv05_no_record():
    r = client.get(f"/accounts/{BOB}/credit-score")
    assert r.status_code == 404
    assert r.json()["detail"] == "NO_RECORD"
    assert client.get(f"/accounts/{BOB}/qualification").status_code == 404

# SV-06: Empty proof -> 400, nothing recorded
def test_sv06_invalid_proof():
    enc = encrypt(ALICE, 50000, 30, 85)
    enc["input_proof"] = "0x"
    r = submit(ALICE, enc)
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_PROOF"
    assert client.get(f"/accounts/{ALICE}/has-credit-data").json()["has_credit_data"] is False

# SV-07: Inputs encrypted for another user -> 400
def test_sv07_proof_bound_to_submitter():
    r = submit(ALICE, encrypt(BOB, 50000, 30, 85))
    assert r.status_code == 400

# SV-08: Malformed boundary values -> 422
def test_sv08_validation():
    enc = encrypt(ALICE, 50000, 30, 85)
    enc["input_proof"] = "0xzz"
    r = submit(ALICE, enc)
    assert r.status_code == 422
    assert r.json()["detail"] == "INVALID_INCOME_INPUT_PROOF"
    assert client.get("/accounts/not-an-address/has-credit-data").status_code == 422
    assert client.post("/inputs", json={"user_address": ALICE, "values": [-1]}).status_code == 422
    assert client.post("/inputs", json={"user_address": ALICE, "values": []}).status_code == 422
    assert client.post("/credit-data", json={"sender": ALICE}).status_code == 422

# SV-09: Default threshold readable by the owner only
def test_sv09_threshold_owner_decrypt():
    handle = client.get("/threshold").json()["handle"]
    assert decrypt(DEPLOYER_ADDRESS, handle).json()["value"] == 50
    assert decrypt(ALICE, handle).status_code == 403

# SV-10: Owner updates the threshold
def test_sv10_set_threshold():
    enc = encrypt(DEPLOYER_ADDRESS, 90)
    r = set_threshold(DEPLOYER_ADDRESS, enc)
    assert r.status_code == 200
    assert client.get("/threshold").json()["handle"] == enc["handles"][0]

    body = submit(ALICE, encrypt(ALICE, 50000, 30, 85)).json()
    assert decrypt(ALICE, body["qualification"]).json()["value"] == 0

# SV-11: Non-owner threshold update -> 403
def test_sv11_set_threshold_not_owner():
    before = client.get("/threshold").json()["handle"]
    r = set_threshold(ALICE, encrypt(ALICE, 1))
    assert r.status_code == 403
    assert r.json()["detail"] == "UNAUTHORIZED"
    assert client.get("/threshold").json()["handle"] == before

# SV-12: Another user cannot decrypt a score
def test_sv12_decrypt_not_granted():
    body = submit(ALICE, encrypt(ALICE, 50000, 30, 85)).json()
    r = decrypt(BOB, body["credit_score"])
    assert r.status_code == 403
    assert decrypt(ALICE, "0x1234").status_code == 422

# SV-13: Submissions are rate limited per sender
def test_sv13_rate_limit():
    enc = encrypt(ALICE, 50000, 30, 85)
    enc["input_proof"] = "0x"
    for _ in range(SUBMIT_RPM):
        assert submit(ALICE, enc).status_code == 400
    r = submit(ALICE, enc)
    assert r.status_code == 429
    assert "Retry-After" in r.headers
    # Other senders keep their own window
    assert submit(BOB, enc).status_code == 400

# SV-14: Correlation id echoed back
def test_sv14_transaction_id_header():
    r = client.get("/protocol-id", headers={"X-Transaction-ID": "tx-123"})
    assert r.headers["X-Transaction-ID"] == "tx-123"
    assert client.get("/protocol-id").headers["X-Transaction-ID"]

# SV-15: Decrypting as another account with one's own key -> 403, no value
def test_sv15_decrypt_as_other_account():
    score = submit(ALICE, encrypt(ALICE, 50000, 30, 85)).json()["credit_score"]

    r = decrypt(ALICE, score, key=KEYS[BOB])
    assert r.status_code == 403
    assert r.json()["detail"] == "INVALID_SIGNATURE"
    assert "value" not in r.json()

    r = client.post("/decrypt", json={"principal": ALICE, "handle": score})
    assert r.status_code == 403
    assert r.json()["detail"] == "MISSING_SIGNATURE"

# SV-16: Threshold update claiming the deployer -> 403, threshold unchanged
def test_sv16_threshold_as_deployer_without_key():
    before = client.get("/threshold").json()["handle"]
    enc = encrypt(DEPLOYER_ADDRESS, 0)

    r = set_threshold(DEPLOYER_ADDRESS, enc, key=KEYS[ALICE])
    assert r.status_code == 403
    assert r.json()["detail"] == "INVALID_SIGNATURE"

    r = client.post("/threshold", json={
        "sender": DEPLOYER_ADDRESS, "handle": enc["handles"][0], "input_proof": enc["input_proof"],
    })
    assert r.status_code == 403
    assert client.get("/threshold").json()["handle"] == before
    assert decrypt(DEPLOYER_ADDRESS, before).json()["value"] == 50

# SV-17: Submitting as another account -> 403, nothing recorded
def test_sv17_submit_as_other_account():
    r = submit(ALICE, encrypt(ALICE, 50000, 30, 85), key=KEYS[BOB])
    assert r.status_code == 403
    assert r.json()["detail"] == "INVALID_SIGNATURE"
    assert client.get(f"/accounts/{ALICE}/has-credit-data").json()["has_credit_data"] is False

# SV-18: Accounts without a registered key are refused
def test_sv18_unknown_account():
    handle = client.get("/threshold").json()["handle"]
    r = decrypt(UNREGISTERED, handle, key=SigningKey.generate())
    assert r.status_code == 403
    assert r.json()["detail"] == "UNKNOWN_ACCOUNT"

# SV-19: A signed request is accepted once
def test_sv19_replay():
    score = submit(ALICE, encrypt(ALICE, 50000, 30, 85)).json()["credit_score"]
    body = signed(ACTION_DECRYPT, ALICE, {"principal": ALICE, "handle": score})
    assert client.post("/decrypt", json=body).status_code == 200
    r = client.post("/decrypt", json=body)
    assert r.status_code == 403
    assert r.json()["detail"] == "REPLAY"

# SV-20: Signatures cover freshness, body and action
def test_sv20_signature_binding():
    body = submit(ALICE, encrypt(ALICE, 50000, 30, 85)).json()

    stale = signed(ACTION_DECRYPT, ALICE, {"principal": ALICE, "handle": body["credit_score"]},
                   issued_at=int(time.time()) - 3600)
    r = client.post("/decrypt", json=stale)
    assert r.json()["detail"] == "REQUEST_EXPIRED"

    future = signed(ACTION_DECRYPT, ALICE, {"principal": ALICE, "handle": body["credit_score"]},
                    issued_at=int(time.time()) + 3600)
    assert client.post("/decrypt", json=future).json()["detail"] == "ISSUED_IN_FUTURE"

    swapped = signed(ACTION_DECRYPT, ALICE, {"principal": ALICE, "handle": body["credit_score"]})
    swapped["handle"] = body["qualification"]
    assert client.post("/decrypt", json=swapped).json()["detail"] == "INVALID_SIGNATURE"

    # A decrypt signature does not authorize a threshold update
    enc = encrypt(DEPLOYER_ADDRESS, 0)
    payload = {"sender": DEPLOYER_ADDRESS, "handle": enc["handles"][0], "input_proof": enc["input_proof"]}
    wrong_action = signed(ACTION_DECRYPT, DEPLOYER_ADDRESS, payload)
    assert client.post("/threshold", json=wrong_action).status_code == 403

# SV-21: Dev input gateway is off in production
def test_sv21_inputs_disabled_in_production(monkeypatch):
    monkeypatch.setattr(node, "is_production", lambda: True)
    r = client.post("/inputs", json={"user_address": ALICE, "values": [1]})
    assert r.status_code == 404
    assert r.json()["detail"] == "INPUT_GATEWAY_DISABLED"
