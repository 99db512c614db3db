import tempfile
import unittest
from pathlib import Path

from solders.pubkey import Pubkey

from fakes import FakeNetwork, make_identity

from flashkit.errors import NetworkError
from flashkit.tui.commands import cmd_dispatch_init, cmd_establish, cmd_provision, cmd_report

PROGRAM = Pubkey.from_string("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin")


class TuiCommandTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.network = FakeNetwork()
        self.network.add_program(PROGRAM)
        self.identity, self.payer = make_identity(self.tmp, PROGRAM)
        self.network.balances[self.payer.pubkey()] = 10_000_000_000

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _session(self):
        result = cmd_establish(self.identity, network_factory=lambda identity: self.network)
        self.assertTrue(result.success, result.errors)
        return result.data["session"]

    def test_establish_collects_progress(self) -> None:
        seen = []
        result = cmd_establish(
            self.identity,
            network_factory=lambda identity: self.network,
            on_progress=lambda msg, pct: seen.append(msg),
        )
        self.assertTrue(result.success)
        self.assertEqual(result.data["payer"], str(self.payer.pubkey()))
        self.assertEqual(result.logs, seen)

    def test_establish_failure_is_a_result(self) -> None:
        del self.network.accounts[PROGRAM]
        result = cmd_establish(self.identity, network_factory=lambda identity: self.network)
        self.assertFalse(result.success)
        self.assertEqual(result.data["step"], "establish")
        self.assertEqual(result.data["address"], str(PROGRAM))
        self.assertTrue(result.errors)

    def test_provision_dispatch_report(self) -> None:
        session = self._session()

        provisioned = cmd_provision(session)
        self.assertTrue(provisioned.success)
        self.assertEqual(len(provisioned.data["created"]), 4)

        again = cmd_provision(session)
        self.assertEqual(again.data["created"], [])

        dispatched = cmd_dispatch_init(session)
        self.assertTrue(dispatched.success)
        self.assertEqual(dispatched.data["signature"], str(self.network.submitted[-1].signatures[0]))

        reported = cmd_report(session)
        self.assertTrue(reported.success)
        self.assertEqual(reported.data["raw"], bytes(100))
        self.assertEqual(len(reported.data["dump"]), 7)

    def test_provision_failure_keeps_step(self) -> None:
        session = self._session()

        def fail(tx) -> None:
            raise NetworkError("connection reset")

        self.network.on_submit = fail
        result = cmd_provision(session)
        self.assertFalse(result.success)
        self.assertEqual(result.data["step"], "provision:initializer")

    def test_report_missing_account(self) -> None:
        result = cmd_report(self._session(), name="token_program")
        self.assertFalse(result.success)
        self.assertEqual(result.data["step"], "report")


if __name__ == "__main__":
    unittest.main()
