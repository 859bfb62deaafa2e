import io
import json
import logging
import os
import tempfile
import unittest
from contextlib import redirect_stdout

from encscore.cli import main
from encscore.keys import FileKeyProvider, load_account_key
from encscore.service.auth import ACTION_DECRYPT, AccountKeyRegistry, RequestAuthenticator, sign_request
from encscore.service.models import RequestAuth


class TestCLI(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        self._handlers = root.handlers[:]
        self._level = root.level

    def tearDown(self):
        root = logging.getLogger()
        for handler in root.handlers[:]:
            if handler not in self._handlers:
                root.removeHandler(handler)
        for handler in self._handlers:
            if handler not in root.handlers:
                root.addHandler(handler)
        root.setLevel(self._level)

    def _run(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main(list(argv))
        return code, out.getvalue()

    def test_networks(self):
        code, out = self._run("networks")
        self.assertEqual(code, 0)
        self.assertIn("sepolia", out)
        self.assertIn("protocol_id=10001", out)

    def test_simulate_two_rounds(self):
        code, out = self._run(
            "simulate", "--income", "50000", "--debt-ratio", "30",
            "--repayment-score", "85", "--rounds", "2",
        )
        self.assertEqual(code, 0)
        self.assertIn("Round 1: score=80 qualified=1", out)
        self.assertIn("Round 2: score=84 qualified=1", out)

    def test_simulate_with_threshold(self):
        code, out = self._run(
            "simulate", "--income", "50000", "--debt-ratio", "30",
            "--repayment-score", "85", "--threshold", "90",
        )
        self.assertEqual(code, 0)
        self.assertIn("Round 1: score=80 qualified=0", out)

    def test_simulate_unsupported_chain(self):
        code, _ = self._run(
            "simulate", "--income", "1", "--debt-ratio", "1",
            "--repayment-score", "1", "--chain-id", "5",
        )
        self.assertEqual(code, 1)

    def test_keygen(self):
        with tempfile.TemporaryDirectory() as tmp:
            code, _ = self._run("keygen", "--output-dir", tmp, "--kid", "verifier-test")
            self.assertEqual(code, 0)

            key_path = os.path.join(tmp, "secrets", "input_signing_key.json")
            trust_path = os.path.join(tmp, "trust", "trust_store.json")
            with open(trust_path, "r", encoding="utf-8") as f:
                trust = json.load(f)
            self.assertIn("verifier-test", trust["input_verifier_keys"])

            provider = FileKeyProvider(key_path, trust_path)
            self.assertEqual(provider.get_kid(), "verifier-test")

    def test_account_key(self):
        alice = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
        bob = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"
        contract = "0x" + "11" * 20
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(self._run("account-key", "--address", alice, "--output-dir", tmp)[0], 0)
            self.assertEqual(self._run("account-key", "--address", bob, "--output-dir", tmp)[0], 0)

            registry = AccountKeyRegistry.from_file(os.path.join(tmp, "trust", "account_keys.json"))
            self.assertIsNotNone(registry.public_key(alice))
            self.assertIsNotNone(registry.public_key(bob))

            key = load_account_key(os.path.join(tmp, "secrets", f"account_{alice}.json"))
            body = {"principal": alice, "handle": "0x" + "00" * 32}
            auth = RequestAuth(**sign_request(key, ACTION_DECRYPT, alice, contract, body))
            RequestAuthenticator(registry, 300, 30).authenticate(ACTION_DECRYPT, alice, contract, body, auth)

    def test_account_key_invalid_address(self):
        with tempfile.TemporaryDirectory() as tmp:
            code, _ = self._run("account-key", "--address", "alice", "--output-dir", tmp)
            self.assertEqual(code, 1)

    def test_no_command(self):
        code, _ = self._run()
        self.assertEqual(code, 2)


if __name__ == "__main__":
    unittest.main()
