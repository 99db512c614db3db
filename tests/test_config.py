import os
import tempfile
import unittest
from pathlib import Path

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from fakes import write_keypair

from flashkit.accounts import default_descriptors
from flashkit.config import (
    CLUSTER_URLS,
    Identity,
    load_config,
    load_keypair,
    load_solana_cli_config,
    resolve_identity,
    starter_config,
    write_config,
)
from flashkit.constants import DEFAULT_RPC_URL, ENV_PAYER_KEYPAIR, ENV_PROGRAM_ID, ENV_RPC_URL
from flashkit.errors import ConfigurationError

PROGRAM = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


class ConfigFileTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_starter_config_round_trips_through_toml(self) -> None:
        path = write_config(self.tmp / "flashkit.toml", starter_config(cluster="devnet", program_id=PROGRAM))
        data = load_config(path)
        self.assertEqual(data["cluster"]["cluster"], "devnet")
        self.assertEqual(data["cluster"]["program_id"], PROGRAM)
        self.assertNotIn("program_keypair", data["cluster"])
        self.assertEqual([entry["seed"] for entry in data["accounts"]], ["hello1", "hello2", "hello3", "hello4"])

    def test_missing_config_file(self) -> None:
        with self.assertRaisesRegex(ConfigurationError, "not found"):
            load_config(self.tmp / "absent.toml")

    def test_invalid_toml(self) -> None:
        path = self.tmp / "flashkit.toml"
        path.write_text("[cluster\n")
        with self.assertRaises(ConfigurationError):
            load_config(path)

    def test_load_keypair(self) -> None:
        keypair = write_keypair(self.tmp / "id.json")
        self.assertEqual(load_keypair(self.tmp / "id.json").pubkey(), keypair.pubkey())

    def test_load_keypair_errors(self) -> None:
        (self.tmp / "garbage.json").write_text("not json")
        for path in (self.tmp / "absent.json", self.tmp / "garbage.json"):
            with self.subTest(path=path):
                with self.assertRaisesRegex(ConfigurationError, "Failed to read keypair"):
                    load_keypair(path)

    def test_solana_cli_config(self) -> None:
        cfg = self.tmp / "config.yml"
        cfg.write_text(
            "---\n"
            "json_rpc_url: \"https://api.devnet.solana.com\"\n"
            "keypair_path: /home/me/.config/solana/id.json\n"
            "# comment: ignored\n"
            "commitment: confirmed\n"
        )
        parsed = load_solana_cli_config({"SOLANA_CONFIG": str(cfg)})
        self.assertEqual(parsed["json_rpc_url"], "https://api.devnet.solana.com")
        self.assertEqual(parsed["keypair_path"], "/home/me/.config/solana/id.json")
        self.assertNotIn("# comment", parsed)

    def test_solana_cli_config_missing(self) -> None:
        self.assertEqual(load_solana_cli_config({"SOLANA_CONFIG": str(self.tmp / "none.yml")}), {})


class ResolveIdentityTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.env = {"SOLANA_CONFIG": str(self.tmp / "no-solana-config.yml")}
        self._cwd = os.getcwd()
        os.chdir(self.tmp)

    def tearDown(self) -> None:
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def _write(self, text: str) -> Path:
        path = self.tmp / "flashkit.toml"
        path.write_text(text)
        return path

    def test_defaults_without_any_source(self) -> None:
        identity = resolve_identity(env=self.env)
        self.assertEqual(identity.rpc_url, DEFAULT_RPC_URL)
        self.assertIsNone(identity.program_id)
        self.assertEqual(identity.program_keypair_path.name, "solana_flashloan_template-keypair.json")
        self.assertEqual(list(identity.descriptors), default_descriptors())
        self.assertTrue(identity.airdrop)

    def test_file_values_resolve_relative_to_config(self) -> None:
        self._write(
            '[cluster]\n'
            'rpc_url = "http://file.invalid:8899"\n'
            'payer = "keys/payer.json"\n'
            f'program_id = "{PROGRAM}"\n'
            'airdrop = false\n'
            'timeout = 5\n'
            '\n'
            '[[accounts]]\n'
            'name = "vault"\n'
            'seed = "vault"\n'
            'size = 32\n'
        )
        identity = resolve_identity(env=self.env)
        self.assertEqual(identity.rpc_url, "http://file.invalid:8899")
        self.assertEqual(identity.payer_path, (self.tmp / "keys" / "payer.json").resolve())
        self.assertEqual(identity.get_program_address(), Pubkey.from_string(PROGRAM))
        self.assertFalse(identity.airdrop)
        self.assertEqual(identity.timeout, 5.0)
        self.assertEqual([d.name for d in identity.descriptors], ["vault"])

    def test_env_overrides_file_and_flags_override_env(self) -> None:
        self._write('[cluster]\nrpc_url = "http://file.invalid:8899"\npayer = "file.json"\n')
        env = dict(self.env)
        env[ENV_RPC_URL] = "http://env.invalid:8899"
        env[ENV_PAYER_KEYPAIR] = "/keys/env.json"
        env[ENV_PROGRAM_ID] = PROGRAM

        identity = resolve_identity(env=env)
        self.assertEqual(identity.rpc_url, "http://env.invalid:8899")
        self.assertEqual(identity.payer_path, Path("/keys/env.json"))
        self.assertEqual(identity.program_id, PROGRAM)

        identity = resolve_identity(rpc_url="http://flag.invalid:8899", payer="/keys/flag.json", env=env)
        self.assertEqual(identity.rpc_url, "http://flag.invalid:8899")
        self.assertEqual(identity.payer_path, Path("/keys/flag.json"))

    def test_cluster_flag_selects_url(self) -> None:
        env = dict(self.env)
        env[ENV_RPC_URL] = "http://env.invalid:8899"
        identity = resolve_identity(cluster="devnet", env=env)
        self.assertEqual(identity.rpc_url, CLUSTER_URLS["devnet"])
        self.assertEqual(identity.cluster, "devnet")

    def test_solana_cli_config_fills_gaps(self) -> None:
        cfg = self.tmp / "cli.yml"
        cfg.write_text("json_rpc_url: http://cli.invalid:8899\nkeypair_path: /keys/cli.json\n")
        identity = resolve_identity(env={"SOLANA_CONFIG": str(cfg)})
        self.assertEqual(identity.rpc_url, "http://cli.invalid:8899")
        self.assertEqual(identity.payer_path, Path("/keys/cli.json"))

    def test_named_clusters(self) -> None:
        self.assertEqual(sorted(CLUSTER_URLS), ["devnet", "localnet", "mainnet", "testnet"])
        for name in CLUSTER_URLS:
            with self.subTest(cluster=name):
                self.assertEqual(resolve_identity(cluster=name, env=self.env).rpc_url, CLUSTER_URLS[name])

    def test_unknown_cluster(self) -> None:
        with self.assertRaisesRegex(ConfigurationError, "Unknown cluster"):
            resolve_identity(cluster="moonnet", env=self.env)

    def test_invalid_airdrop_and_timeout(self) -> None:
        for body in ("[cluster]\nairdrop = \"yes\"\n", "[cluster]\ntimeout = 0\n", "[cluster]\ntimeout = true\n"):
            with self.subTest(body=body):
                self._write(body)
                with self.assertRaises(ConfigurationError):
                    resolve_identity(env=self.env)

    def test_explicit_missing_config(self) -> None:
        with self.assertRaises(ConfigurationError):
            resolve_identity(self.tmp / "elsewhere.toml", env=self.env)


class IdentityTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_program_address_from_keypair(self) -> None:
        program = write_keypair(self.tmp / "program.json")
        identity = Identity(rpc_url="x", payer_path=self.tmp / "p.json", program_keypair_path=self.tmp / "program.json")
        self.assertEqual(identity.get_program_address(), program.pubkey())

    def test_program_keypair_missing(self) -> None:
        identity = Identity(rpc_url="x", payer_path=self.tmp / "p.json", program_keypair_path=self.tmp / "absent.json")
        with self.assertRaisesRegex(ConfigurationError, "Program may need to be deployed"):
            identity.get_program_address()

    def test_invalid_program_id(self) -> None:
        identity = Identity(rpc_url="x", payer_path=self.tmp / "p.json", program_id="not-a-key")
        with self.assertRaisesRegex(ConfigurationError, "not a valid pubkey"):
            identity.get_program_address()

    def test_payer_signer(self) -> None:
        payer = write_keypair(self.tmp / "p.json", Keypair())
        identity = Identity(rpc_url="x", payer_path=self.tmp / "p.json")
        self.assertEqual(identity.get_payer_signer().pubkey(), payer.pubkey())


if __name__ == "__main__":
    unittest.main()
