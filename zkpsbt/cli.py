#!/usr/bin/env python3
"""
ZKP-SBT CLI

Command-line front end for the soulbound credit token core.

Usage:
    zkpsbt <command> [subcommand] [options]

Commands:
    keygen      Generate a wallet key pair
    setup       Generate and write Groth16 proving / verification keys
    commit      Compute the commitment of a profile
    encrypt     Seal one scalar to a public key
    decrypt     Open one sealed scalar with a private key
    prove       Prove eligibility from a JSON inputs file
    verify      Verify a proof bundle against a verification key
    config      Configuration management

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from zkpsbt import __version__
from zkpsbt.observability import SBTLayer, get_logger

logger = get_logger("cli", SBTLayer.CLI)


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.YAML:
        import yaml
        return yaml.dump(data, default_flow_style=False)
    return json.dumps(data, indent=2, default=str)


def _read_json(path: str) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise CLIError(f"File not found: {path}")
    except json.JSONDecodeError as e:
        raise CLIError(f"Invalid JSON in {path}: {e}")


class SBTCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="zkpsbt",
            description="Soulbound credit token toolkit",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"zkpsbt {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="Configuration file to load before running",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error output",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        """Register all command groups."""
        self.subparsers.add_parser("keygen", help="Generate a wallet key pair")

        setup = self.subparsers.add_parser("setup", help="Generate proving and verification keys")
        setup.add_argument("--out", "-o", help="Key directory (default: prover.key_dir)")

        commit = self.subparsers.add_parser("commit", help="Commitment of a profile")
        commit.add_argument("profile", help="Profile JSON file")

        encrypt = self.subparsers.add_parser("encrypt", help="Seal a scalar to a public key")
        encrypt.add_argument("--public-key", "-k", required=True, help="Public key (hex)")
        encrypt.add_argument("value", type=int, help="Non-negative integer to seal")

        decrypt = self.subparsers.add_parser("decrypt", help="Open a sealed scalar")
        decrypt.add_argument("--private-key", "-k", required=True, help="Private key (hex)")
        decrypt.add_argument("ciphertext", help="Sealed field (hex)")

        prove = self.subparsers.add_parser("prove", help="Prove eligibility")
        prove.add_argument("inputs", help="Circuit inputs JSON file")
        prove.add_argument("--keys", help="Key directory (default: prover.key_dir)")
        prove.add_argument("--out", "-o", help="Write the proof bundle here instead of stdout")

        verify = self.subparsers.add_parser("verify", help="Verify a proof bundle")
        verify.add_argument("bundle", help="Proof bundle JSON file")
        verify.add_argument("--keys", help="Key directory (default: prover.key_dir)")

        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        # config get
        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., verifier.eligibility_policy)")

        # config show
        config_sub.add_parser("show", help="Show all configuration")

        # config validate
        config_sub.add_parser("validate", help="Validate configuration")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            from zkpsbt.config import get_config_manager
            mgr = get_config_manager()
            mgr.load_defaults()
            if parsed.config:
                mgr.load_from_file(parsed.config)

            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except Exception as e:
            logger.error(
                "Command failed",
                error_code=getattr(e, "error_code", type(e).__name__),
                operation=parsed.command,
            )
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        return handler(args)

    # Key handlers
    def _handle_keygen(self, args: argparse.Namespace) -> Any:
        from zkpsbt.ecies import generate_keypair
        private_key, public_key, address = generate_keypair()
        return {
            "private_key": "0x" + private_key.hex(),
            "public_key": "0x" + public_key.hex(),
            "address": address,
        }

    def _handle_setup(self, args: argparse.Namespace) -> Any:
        from zkpsbt.circuit import CreditScoreCircuit
        from zkpsbt.groth16 import setup
        from zkpsbt.keystore import save_keys

        shape = CreditScoreCircuit().shape()
        pk, vk = setup(shape)
        pk_path, vk_path = save_keys(pk, vk, args.out)
        return {
            "proving_key": str(pk_path),
            "verification_key": str(vk_path),
            "constraints": shape.num_constraints,
            "public_inputs": vk.public_input_count,
        }

    # Codec handlers
    def _handle_commit(self, args: argparse.Namespace) -> Any:
        from zkpsbt.commitment import Profile, commitment_hex, compute_commitment
        profile = Profile.from_dict(_read_json(args.profile))
        return {"commitment": commitment_hex(compute_commitment(profile))}

    def _handle_encrypt(self, args: argparse.Namespace) -> Any:
        from zkpsbt.ecies import encrypt
        return {"ciphertext": encrypt(args.public_key, args.value).to_hex()}

    def _handle_decrypt(self, args: argparse.Namespace) -> Any:
        from zkpsbt.ecies import decrypt
        return {"value": decrypt(args.private_key, args.ciphertext)}

    # Proof handlers
    def _handle_prove(self, args: argparse.Namespace) -> Any:
        from zkpsbt.circuit import CircuitInputs
        from zkpsbt.keystore import load_keys
        from zkpsbt.prover import ProofGenerator

        inputs = CircuitInputs.from_dict(_read_json(args.inputs))
        pk, _ = load_keys(args.keys)
        bundle = ProofGenerator(pk).generate(inputs).to_dict()

        if args.out:
            Path(args.out).write_text(json.dumps(bundle, indent=2), encoding="utf-8")
            return {"written": args.out}
        return bundle

    def _handle_verify(self, args: argparse.Namespace) -> Any:
        from zkpsbt.groth16 import verify
        from zkpsbt.keystore import load_keys
        from zkpsbt.prover import ProofBundle

        bundle = ProofBundle.from_dict(_read_json(args.bundle))
        _, vk = load_keys(args.keys)
        valid = verify(vk, bundle.proof, bundle.public_signals.to_list())
        if not valid:
            raise CLIError("Proof does not verify", exit_code=2)
        return {"valid": True, "public_signals": bundle.public_signals.to_json()}

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        from zkpsbt.config import get_config_manager
        mgr = get_config_manager()
        return {"path": args.path, "value": mgr.get(args.path)}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        from zkpsbt.config import get_config_manager
        mgr = get_config_manager()
        return mgr.config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        from zkpsbt.config import get_config_manager
        mgr = get_config_manager()
        errors = mgr.validate()
        return {"valid": len(errors) == 0, "errors": errors}


def main() -> int:
    """CLI entry point."""
    cli = SBTCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
