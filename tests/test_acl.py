import threading
import unittest

from encscore import EncryptedType, MalformedReference, PermissionManager
from encscore.hashing import derive_handle


ALICE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
CONTRACT = "0x" + "11" * 20


class TestPermissionManager(unittest.TestCase):

    def setUp(self):
        self.acl = PermissionManager()
        self.handle = derive_handle({"n": 1}, EncryptedType.EUINT32)

    def test_grant_and_query(self):
        self.assertFalse(self.acl.is_granted(self.handle, ALICE))
        self.acl.grant(self.handle, ALICE)
        self.assertTrue(self.acl.is_granted(self.handle, ALICE))
        self.assertFalse(self.acl.is_granted(self.handle, CONTRACT))

    def test_grant_idempotent(self):
        self.acl.grant(self.handle, ALICE)
        self.acl.grant(self.handle, ALICE.upper().replace("0X", "0x"))
        self.assertEqual(self.acl.grant_count(), 1)

    def test_grant_malformed_reference(self):
        with self.assertRaises(MalformedReference):
            self.acl.grant("0xdeadbeef", ALICE)
        with self.assertRaises(MalformedReference):
            self.acl.grant(self.handle, "")

    def test_query_malformed_reference_is_false(self):
        self.assertFalse(self.acl.is_granted("garbage", ALICE))

    def test_transaction_commits(self):
        with self.acl.transaction():
            self.acl.grant(self.handle, ALICE)
            # Visible to the transaction itself, not yet committed
            self.assertTrue(self.acl.is_granted(self.handle, ALICE))
            self.assertEqual(self.acl.principals(self.handle), frozenset())
        self.assertEqual(self.acl.principals(self.handle), frozenset({ALICE}))

    def test_transaction_discards_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.acl.transaction():
                self.acl.grant(self.handle, ALICE)
                raise RuntimeError("abort")
        self.assertFalse(self.acl.is_granted(self.handle, ALICE))
        self.assertEqual(self.acl.grant_count(), 0)

    def test_nested_transaction_folds_into_parent(self):
        with self.acl.transaction():
            with self.acl.transaction():
                self.acl.grant(self.handle, ALICE)
            self.assertEqual(self.acl.grant_count(), 0)
        self.assertEqual(self.acl.grant_count(), 1)

    def test_outer_failure_discards_inner_grants(self):
        with self.assertRaises(ValueError):
            with self.acl.transaction():
                with self.acl.transaction():
                    self.acl.grant(self.handle, ALICE)
                raise ValueError("abort")
        self.assertEqual(self.acl.grant_count(), 0)

    def test_staged_grants_invisible_to_other_threads(self):
        seen = []
        with self.acl.transaction():
            self.acl.grant(self.handle, ALICE)
            t = threading.Thread(target=lambda: seen.append(self.acl.is_granted(self.handle, ALICE)))
            t.start()
            t.join()
        self.assertEqual(seen, [False])
        self.assertTrue(self.acl.is_granted(self.handle, ALICE))


if __name__ == "__main__":
    unittest.main()
