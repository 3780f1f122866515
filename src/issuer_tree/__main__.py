"""
Issuer tree CLI entry point.

Build the trusted-issuer Merkle tree from a registry snapshot, check it
against the published root, and produce inclusion proofs for the prover.

Usage::

    python -m issuer_tree build --registry issuers.json
    python -m issuer_tree root --registry issuers.json --published-root 0x1d2c...
    python -m issuer_tree lookup --registry issuers.json --key-file dsc.pem
    python -m issuer_tree lookup --registry issuers.json --key-file dsc.pem --truncate-keys
    python -m issuer_tree prove --registry issuers.json --index 42
    python -m issuer_tree prove --registry issuers.json --callback-data 'AAAA%2B...,...,...'

Commands:
    build   Rebuild hashes and tree from scratch and refresh the cache
    root    Print the root of the (possibly cached) tree
    lookup  Print the leaf index of an issuer key
    prove   Print an inclusion proof, or full proof inputs for callback data

Exit codes:
    0  success
    1  invalid input or registry
    2  issuer key is not trusted
    3  tree root differs from the published root
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from issuer_tree import config
from issuer_tree.subspecs.anchor import TrustAnchor, active_config
from issuer_tree.subspecs.merkle import MerkleProof
from issuer_tree.subspecs.packing import TRUNCATING_SCHEME
from issuer_tree.subspecs.poseidon import PoseidonFactory
from issuer_tree.subspecs.prover import make_proof_inputs_from_callback
from issuer_tree.subspecs.registry import IssuerRegistry, modulus_from_key_bytes
from issuer_tree.subspecs.storage import IssuerCache
from issuer_tree.types import IssuerTreeError, RootMismatchError, UnknownIssuerError
from issuer_tree.types.parsing import parse_unsigned

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNTRUSTED = 2
EXIT_ROOT_MISMATCH = 3


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        return f"{timestamp} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Log to stderr so stdout carries only command output."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def proof_to_json(proof: MerkleProof) -> dict[str, Any]:
    """Render a proof with decimal strings, the way the prover reads it."""
    return {
        "leaf": str(proof.leaf),
        "pathIndices": list(proof.path_indices),
        "siblings": [[str(node) for node in sibling] for sibling in proof.siblings],
    }


def _read_modulus(args: argparse.Namespace) -> int:
    if args.key_file is not None:
        return modulus_from_key_bytes(args.key_file.read_bytes())
    return parse_unsigned(args.modulus)


def _emit(text: str, output: Path | None) -> None:
    if output is None:
        print(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %s", output)


async def run(args: argparse.Namespace) -> int:
    """Execute one CLI command and return its exit code."""
    registry = IssuerRegistry.from_file(args.registry)
    cache = None if args.no_cache else IssuerCache(args.cache_dir)

    if args.command == "build" and cache is not None:
        cache.clear()

    anchor_config = active_config()
    if args.truncate_keys:
        anchor_config = anchor_config.model_copy(update={"LIMB_SCHEME": TRUNCATING_SCHEME})

    hasher = await PoseidonFactory().get()
    anchor = TrustAnchor(
        hasher, config=anchor_config, cache=cache, published_root=args.published_root
    )
    snapshot = await anchor.load(registry)

    if args.command in ("build", "root"):
        _emit(str(snapshot.root), args.output)
        return EXIT_OK

    if args.command == "lookup":
        _emit(str(anchor.index_of_key(_read_modulus(args))), args.output)
        return EXIT_OK

    # prove
    if args.callback_data is not None:
        inputs = make_proof_inputs_from_callback(anchor, args.callback_data, args.recipient)
        _emit(inputs.to_json(), args.output)
        return EXIT_OK

    index = args.index if args.index is not None else anchor.index_of_key(_read_modulus(args))
    _emit(json.dumps(proof_to_json(anchor.create_proof(index))), args.output)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Construct the argument parser with its sub-commands."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--registry",
        required=True,
        type=Path,
        help="Path to the issuer registry (JSON or YAML)",
    )
    common.add_argument(
        "--cache-dir",
        type=Path,
        default=config.ISSUER_TREE_CACHE_DIR,
        help=f"Cache directory (default: {config.ISSUER_TREE_CACHE_DIR})",
    )
    common.add_argument(
        "--no-cache",
        action="store_true",
        help="Neither read nor write the cache",
    )
    common.add_argument(
        "--published-root",
        default=None,
        help="Root the rebuilt tree must equal (0x-hex or decimal)",
    )
    common.add_argument(
        "--truncate-keys",
        action="store_true",
        help="Hash only the leading 31 groups of moduli longer than 992 bits",
    )
    common.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the result to this file instead of stdout",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )

    parser = argparse.ArgumentParser(
        prog="issuer-tree",
        description="Passport issuer key Merkle tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("build", parents=[common], help="Rebuild the tree and refresh the cache")
    commands.add_parser("root", parents=[common], help="Print the tree root")

    lookup = commands.add_parser("lookup", parents=[common], help="Find an issuer's leaf index")
    key = lookup.add_mutually_exclusive_group(required=True)
    key.add_argument("--modulus", help="RSA modulus (0x-hex or decimal)")
    key.add_argument("--key-file", type=Path, help="PEM/DER RSA public key or certificate")

    prove = commands.add_parser("prove", parents=[common], help="Produce an inclusion proof")
    target = prove.add_mutually_exclusive_group(required=True)
    target.add_argument("--index", type=int, help="Leaf index to prove")
    target.add_argument("--modulus", help="RSA modulus (0x-hex or decimal)")
    target.add_argument("--key-file", type=Path, help="PEM/DER RSA public key or certificate")
    target.add_argument(
        "--callback-data",
        help="URL-encoded digest,signature,pubkey triple; prints full proof inputs",
    )
    prove.add_argument("--recipient", default=None, help="Recipient address for proof inputs")

    parser.set_defaults(modulus=None, key_file=None, index=None, callback_data=None, recipient=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    try:
        return asyncio.run(run(args))
    except UnknownIssuerError as e:
        logger.error("%s", e)
        return EXIT_UNTRUSTED
    except RootMismatchError as e:
        logger.error("%s", e)
        return EXIT_ROOT_MISMATCH
    except (IssuerTreeError, OSError, ValueError, yaml.YAMLError) as e:
        logger.error("%s", e)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
