import unittest

from encscore import (
    DecryptionRelay,
    EncryptedType,
    MalformedReference,
    MockConfidentialBackend,
    PermissionManager,
    Unauthorized,
)


ALICE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
CONTRACT = "0x" + "11" * 20


class TestDecryptionRelay(unittest.TestCase):

    def setUp(self):
        self.backend = MockConfidentialBackend(31337, 31337)
        self.acl = PermissionManager()
        self.relay = DecryptionRelay(self.backend, self.acl)
        self.handle = self.backend.trivial_encrypt(42, EncryptedType.EUINT32)

    def test_served_when_both_granted(self):
        self.acl.grant(self.handle, ALICE)
        self.acl.grant(self.handle, CONTRACT)
        self.assertEqual(self.relay.user_decrypt(self.handle, ALICE, CONTRACT), 42)

    def test_principal_not_granted(self):
        self.acl.grant(self.handle, CONTRACT)
        with self.assertRaises(Unauthorized):
            self.relay.user_decrypt(self.handle, ALICE, CONTRACT)

    def test_contract_not_granted(self):
        self.acl.grant(self.handle, ALICE)
        with self.assertRaises(Unauthorized):
            self.relay.user_decrypt(self.handle, ALICE, CONTRACT)

    def test_malformed_handle(self):
        with self.assertRaises(MalformedReference):
            self.relay.user_decrypt("0xabc", ALICE, CONTRACT)

    def test_denial_audited(self):
        with self.assertLogs("encscore.audit", level="WARNING") as cm:
            with self.assertRaises(Unauthorized):
                self.relay.user_decrypt(self.handle, ALICE, CONTRACT)
        self.assertEqual(cm.records[0].extra_fields["event_type"], "DECRYPTION_DENIED")


if __name__ == "__main__":
    unittest.main()
