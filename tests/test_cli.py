import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from solders.pubkey import Pubkey

from fakes import FakeNetwork, write_keypair

from flashkit.accounts import derive_address
from flashkit.cli import main
from flashkit.config import load_config

PROGRAM = Pubkey.from_string("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin")


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self._cwd = os.getcwd()
        os.chdir(self.tmp)
        self._env = patch.dict(os.environ, {"SOLANA_CONFIG": str(self.tmp / "none.yml")})
        self._env.start()
        for key in ("FLASHKIT_RPC_URL", "FLASHKIT_PAYER_KEYPAIR", "FLASHKIT_PROGRAM_ID"):
            os.environ.pop(key, None)
        self.payer = write_keypair(self.tmp / "payer.json")
        self.network = FakeNetwork()
        self.network.add_program(PROGRAM)

    def tearDown(self) -> None:
        self._env.stop()
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def _main(self, *argv: str) -> tuple[int, str]:
        buf = io.StringIO()
        with redirect_stdout(buf):
            code = main(list(argv))
        return code, buf.getvalue()

    def _identity_args(self) -> list[str]:
        return [
            "--rpc-url",
            "http://fake.invalid:8899",
            "--payer",
            str(self.tmp / "payer.json"),
            "--program-id",
            str(PROGRAM),
        ]

    def test_config_init_writes_starter_file(self) -> None:
        code, out = self._main("config", "init", "--cluster", "devnet", "--program-id", str(PROGRAM))
        self.assertEqual(code, 0)
        self.assertIn("Wrote config file", out)
        data = load_config(self.tmp / "flashkit.toml")
        self.assertEqual(data["cluster"]["program_id"], str(PROGRAM))
        self.assertEqual(len(data["accounts"]), 4)

    def test_config_init_refuses_to_overwrite(self) -> None:
        (self.tmp / "flashkit.toml").write_text("# mine\n")
        code, out = self._main("config", "init")
        self.assertEqual(code, 1)
        self.assertIn("already exists", out)
        self.assertEqual((self.tmp / "flashkit.toml").read_text(), "# mine\n")

        code, _ = self._main("config", "init", "--force")
        self.assertEqual(code, 0)
        self.assertIn("[cluster]", (self.tmp / "flashkit.toml").read_text())

    def test_accounts_show_is_offline(self) -> None:
        with patch("flashkit.pipeline._default_network") as factory:
            code, out = self._main("accounts", "show", *self._identity_args())
        self.assertEqual(code, 0)
        factory.assert_not_called()
        for seed in ("hello1", "hello2", "hello3", "hello4"):
            self.assertIn(str(derive_address(self.payer.pubkey(), seed, PROGRAM)), out)

    def test_run_end_to_end(self) -> None:
        self.network.balances[self.payer.pubkey()] = 10_000_000_000
        with patch("flashkit.pipeline._default_network", return_value=self.network):
            code, out = self._main("run", *self._identity_args())
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("Let's initialize the flashloan program..."))
        self.assertIn("Connection to cluster established", out)
        self.assertIn("100 bytes", out)
        self.assertTrue(out.rstrip().endswith("Success"))
        self.assertEqual(len(self.network.program_calls), 1)

    def test_run_reports_failing_step(self) -> None:
        del self.network.accounts[PROGRAM]
        with patch("flashkit.pipeline._default_network", return_value=self.network):
            code, out = self._main("run", *self._identity_args())
        self.assertEqual(code, 1)
        self.assertIn("[establish]", out)
        self.assertIn("Program needs to be built and deployed", out)
        self.assertNotIn("Success", out)

    def test_missing_payer_keypair(self) -> None:
        args = self._identity_args()
        args[3] = str(self.tmp / "absent.json")
        code, out = self._main("establish", *args)
        self.assertEqual(code, 1)
        self.assertIn("Failed to read keypair", out)

    def test_provision_then_report_by_name(self) -> None:
        self.network.balances[self.payer.pubkey()] = 10_000_000_000
        with patch("flashkit.pipeline._default_network", return_value=self.network):
            code, out = self._main("provision", "--parallel", *self._identity_args())
            self.assertEqual(code, 0)
            self.assertIn("Provisioned 4 account(s), 4 created", out)
            code, out = self._main("report", "--name", "initializer", *self._identity_args())
        self.assertEqual(code, 0)
        self.assertIn(str(derive_address(self.payer.pubkey(), "hello1", PROGRAM)), out)

    def test_dispatch_with_payload(self) -> None:
        self.network.balances[self.payer.pubkey()] = 10_000_000_000
        with patch("flashkit.pipeline._default_network", return_value=self.network):
            code, out = self._main(
                "dispatch", "--opcode", "call", "--payload-hex", "ff00", *self._identity_args()
            )
        self.assertEqual(code, 0)
        self.assertIn("Signature:", out)
        self.assertEqual(self.network.program_calls[0].data, b"2\xff\x00")

    def test_bad_payload_hex(self) -> None:
        self.network.balances[self.payer.pubkey()] = 10_000_000_000
        with patch("flashkit.pipeline._default_network", return_value=self.network):
            code, _ = self._main("dispatch", "--payload-hex", "zz", *self._identity_args())
        self.assertEqual(code, 1)
        self.assertEqual(self.network.program_calls, [])


if __name__ == "__main__":
    unittest.main()
