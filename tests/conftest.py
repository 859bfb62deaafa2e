import os
import pytest

# Small windows so rate limiting is observable; must be set before the app is imported
os.environ["SUBMIT_RPM"] = "5"
os.environ["DECRYPT_RPM"] = "50"
os.environ["ENCSCORE_ENV"] = "dev"
os.environ["ENCSCORE_CHAIN_ID"] = "31337"
os.environ["ENCSCORE_INITIAL_THRESHOLD"] = ""
os.environ["INPUT_SIGNING_KEY_PATH"] = os.path.join(os.path.dirname(__file__), "_absent", "input_signing_key.json")
os.environ["TRUST_STORE_PATH"] = os.path.join(os.path.dirname(__file__), "_absent", "trust_store.json")
os.environ["ACCOUNT_KEYS_PATH"] = os.path.join(os.path.dirname(__file__), "_absent", "account_keys.json")

from encscore.service.main import _startup, reset_node

_startup()

# Fresh node and rate limit windows before each test
@pytest.fixture(autouse=True)
def _reset_node():
    reset_node()
    yield
