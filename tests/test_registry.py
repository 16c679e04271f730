"""
Validation registry behaviour.

Covers exactly-once acceptance, original-signer reporting, the order of
input/authentication/duplicate checks, notifications, and both stores.
"""

import tempfile
import threading
import unittest
from pathlib import Path

from txregistry import (
    AuthenticationFailed,
    CallerIdentity,
    EventLog,
    InMemoryRegistryStore,
    InvalidDescriptor,
    SignatureProof,
    SqliteRegistryStore,
    TransactionDescriptor,
    ValidationRegistry,
    generate_key_pair,
    get_authenticator,
    get_store,
    sign_descriptor,
)

OPERATION = "CreateUser"
RECORD_ID = "User_101"
TIMESTAMP = 123456789


class RegistryBehaviour:
    """Shared cases; subclasses provide make_store()."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.registry = ValidationRegistry(store=self.make_store())
        self.events = EventLog()
        self.registry.subscribe(self.events)
        self.user1 = generate_key_pair()
        self.user2 = generate_key_pair()
        self.tx = TransactionDescriptor(OPERATION, RECORD_ID, TIMESTAMP)

    def tearDown(self):
        self.registry.close()

    def submit(self, key_pair, tx=None):
        tx = tx or self.tx
        return self.registry.validate_transaction(tx, sign_descriptor(tx, key_pair))

    def test_create_user_scenario(self):
        first = self.submit(self.user1)
        self.assertTrue(first.success)
        self.assertEqual(first.signer, self.user1.address)

        self.assertEqual(self.registry.get_signer(OPERATION, RECORD_ID, TIMESTAMP), self.user1.address)

        dup = self.submit(self.user2)
        self.assertFalse(dup.success)
        self.assertEqual(dup.signer, self.user1.address)

        # even the original submitter cannot claim it again
        again = self.submit(self.user1)
        self.assertFalse(again.success)
        self.assertEqual(again.signer, self.user1.address)

        self.assertEqual(len(self.registry), 1)

    def test_every_attempt_emits_one_event(self):
        self.submit(self.user1)
        self.submit(self.user2)

        events = self.events.find(self.registry.get_entry(OPERATION, RECORD_ID, TIMESTAMP).identity_key)
        self.assertEqual([e.success for e in events], [True, False])
        self.assertTrue(all(e.signer == self.user1.address for e in events))
        self.assertTrue(all(e.event == "ValidationResult" for e in events))

    def test_get_signer_absent(self):
        self.assertIsNone(self.registry.get_signer(OPERATION, RECORD_ID, TIMESTAMP))
        self.assertIsNone(self.registry.get_entry(OPERATION, RECORD_ID, TIMESTAMP))
        self.assertFalse(self.registry.is_claimed(OPERATION, RECORD_ID, TIMESTAMP))

    def test_reads_do_not_change_outcome(self):
        for _ in range(3):
            self.registry.get_signer(OPERATION, RECORD_ID, TIMESTAMP)
        self.assertEqual(len(self.registry), 0)
        self.assertTrue(self.submit(self.user2).success)
        for _ in range(3):
            self.assertEqual(self.registry.get_signer(OPERATION, RECORD_ID, TIMESTAMP), self.user2.address)

    def test_no_cross_key_interference(self):
        other = TransactionDescriptor(OPERATION, "User_102", TIMESTAMP)
        self.assertTrue(self.submit(self.user1).success)
        self.assertIsNone(self.registry.get_signer(OPERATION, "User_102", TIMESTAMP))

        result = self.submit(self.user2, other)
        self.assertTrue(result.success)
        self.assertEqual(result.signer, self.user2.address)
        self.assertEqual(self.registry.get_signer(OPERATION, RECORD_ID, TIMESTAMP), self.user1.address)

    def test_bad_signature_rejected_for_new_transaction(self):
        bad = SignatureProof(self.user1.public_key_b64, "AAAA")
        with self.assertRaises(AuthenticationFailed):
            self.registry.validate_transaction(self.tx, bad)
        self.assertEqual(len(self.registry), 0)
        self.assertEqual(len(self.events), 0)
        # the transaction is still claimable
        self.assertTrue(self.submit(self.user2).success)

    def test_bad_signature_rejected_for_claimed_transaction(self):
        self.submit(self.user1)
        wrong_tx = TransactionDescriptor(OPERATION, RECORD_ID, TIMESTAMP + 1)
        misdirected = sign_descriptor(wrong_tx, self.user2)
        with self.assertRaises(AuthenticationFailed):
            self.registry.validate_transaction(self.tx, misdirected)
        self.assertEqual(len(self.events), 1)

    def test_invalid_descriptor_rejected_before_state(self):
        with self.assertRaises(InvalidDescriptor):
            self.registry.validate_transaction((OPERATION, RECORD_ID, -5), SignatureProof("", ""))
        self.assertEqual(len(self.registry), 0)
        self.assertEqual(len(self.events), 0)

    def test_tuple_and_mapping_descriptors(self):
        proof = sign_descriptor(self.tx, self.user1)
        self.assertTrue(self.registry.validate_transaction((OPERATION, RECORD_ID, TIMESTAMP), proof).success)
        mapping = {"operation": OPERATION, "record_id": RECORD_ID, "timestamp": TIMESTAMP}
        self.assertFalse(self.registry.validate_transaction(mapping, proof).success)

    def test_sequence_follows_claim_order(self):
        r1 = self.submit(self.user1)
        r2 = self.submit(self.user1, TransactionDescriptor(OPERATION, RECORD_ID, TIMESTAMP + 1))
        dup = self.submit(self.user2)
        self.assertEqual((r1.sequence, r2.sequence), (1, 2))
        self.assertEqual(dup.sequence, 1)
        self.assertEqual([e.sequence for e in self.registry.store.entries()], [1, 2])

    def test_large_timestamp_round_trips(self):
        big = 2 ** 255 + 17
        tx = TransactionDescriptor(OPERATION, RECORD_ID, big)
        self.submit(self.user1, tx)
        entry = self.registry.get_entry(OPERATION, RECORD_ID, big)
        self.assertEqual(entry.timestamp, big)
        self.assertEqual(entry.submitter, self.user1.address)

    def test_concurrent_submissions_have_one_winner(self):
        n = 12
        users = [generate_key_pair() for _ in range(n)]
        proofs = [sign_descriptor(self.tx, u) for u in users]
        barrier = threading.Barrier(n)
        results = [None] * n
        errors = []

        def worker(i):
            try:
                barrier.wait()
                results[i] = self.registry.validate_transaction(self.tx, proofs[i])
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        winners = [r for r in results if r.success]
        self.assertEqual(len(winners), 1)
        winner = winners[0].signer
        self.assertIn(winner, {u.address for u in users})
        self.assertTrue(all(r.signer == winner for r in results))
        self.assertEqual(self.registry.get_signer(OPERATION, RECORD_ID, TIMESTAMP), winner)
        self.assertEqual(len(self.events), n)


class TestInMemoryRegistry(RegistryBehaviour, unittest.TestCase):

    def make_store(self):
        return InMemoryRegistryStore()


class TestSqliteRegistry(RegistryBehaviour, unittest.TestCase):

    def make_store(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.db_path = str(Path(self._tmp.name) / "registry.db")
        return SqliteRegistryStore(self.db_path)

    def test_entries_survive_reopen(self):
        self.submit(self.user1)
        self.registry.close()

        reopened = ValidationRegistry(store=SqliteRegistryStore(self.db_path))
        try:
            self.assertEqual(reopened.get_signer(OPERATION, RECORD_ID, TIMESTAMP), self.user1.address)
            dup = reopened.validate_transaction(self.tx, sign_descriptor(self.tx, self.user2))
            self.assertFalse(dup.success)
            self.assertEqual(dup.signer, self.user1.address)
        finally:
            reopened.close()

    def test_bytes_fields_round_trip(self):
        tx = TransactionDescriptor(b"\x00op", b"\xffid", 1)
        self.submit(self.user1, tx)
        entry = self.registry.get_entry(b"\x00op", b"\xffid", 1)
        self.assertEqual(entry.operation, b"\x00op")
        self.assertEqual(entry.to_dict()["record_id"], "ff6964")


class TestTransportIdentity(unittest.TestCase):

    def setUp(self):
        self.registry = ValidationRegistry(authenticator=get_authenticator(trust_transport_identity=True))
        self.tx = TransactionDescriptor(OPERATION, RECORD_ID, TIMESTAMP)

    def test_pre_authenticated_callers(self):
        u1 = CallerIdentity("0x" + "11" * 20)
        u2 = CallerIdentity("0x" + "22" * 20)
        self.assertTrue(self.registry.validate_transaction(self.tx, u1).success)
        dup = self.registry.validate_transaction(self.tx, u2)
        self.assertFalse(dup.success)
        self.assertEqual(dup.signer, u1.address)

    def test_signature_still_accepted(self):
        user = generate_key_pair()
        result = self.registry.validate_transaction(self.tx, sign_descriptor(self.tx, user))
        self.assertEqual(result.signer, user.address)


class TestListeners(unittest.TestCase):

    def setUp(self):
        self.registry = ValidationRegistry()
        self.tx = TransactionDescriptor(OPERATION, RECORD_ID, TIMESTAMP)
        self.user = generate_key_pair()

    def test_failing_listener_does_not_block_others(self):
        def broken(event):
            raise RuntimeError("listener down")

        log = EventLog()
        self.registry.subscribe(broken)
        self.registry.subscribe(log)

        with self.assertLogs("txregistry.events", level="ERROR"):
            result = self.registry.validate_transaction(self.tx, sign_descriptor(self.tx, self.user))

        self.assertTrue(result.success)
        self.assertEqual(log.recent(), [result])
        self.assertEqual(self.registry.get_signer(OPERATION, RECORD_ID, TIMESTAMP), self.user.address)

    def test_unsubscribe(self):
        log = EventLog()
        unsubscribe = self.registry.subscribe(log)
        unsubscribe()
        self.registry.validate_transaction(self.tx, sign_descriptor(self.tx, self.user))
        self.assertEqual(len(log), 0)

    def test_event_log_is_bounded(self):
        log = EventLog(maxlen=2)
        self.registry.subscribe(log)
        for ts in range(3):
            tx = TransactionDescriptor(OPERATION, RECORD_ID, ts)
            self.registry.validate_transaction(tx, sign_descriptor(tx, self.user))
        self.assertEqual([e.sequence for e in log.recent()], [2, 3])
        self.assertEqual([e.sequence for e in log.recent(1)], [3])
        log.clear()
        self.assertEqual(log.recent(), [])


class TestStoreFactory(unittest.TestCase):

    def test_memory(self):
        self.assertIsInstance(get_store("memory"), InMemoryRegistryStore)

    def test_unknown(self):
        with self.assertRaises(ValueError):
            get_store("redis")

    def test_sqlite_memory_path_rejected(self):
        with self.assertRaises(ValueError):
            SqliteRegistryStore(":memory:")


if __name__ == "__main__":
    unittest.main()
