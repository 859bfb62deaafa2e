#!/usr/bin/env python3
"""
encscore Command Line Interface

Usage:
    encscore keygen --output-dir <dir>
    encscore account-key --address <addr> --output-dir <dir>
    encscore simulate --income <n> --debt-ratio <n> --repayment-score <n> [--threshold <n>] [--rounds <n>]
    encscore networks
"""

import argparse
import json
import sys

from .config import DEPLOYER_ADDRESS, LOG_JSON, LOG_LEVEL, is_debug
from .errors import EncryptedCreditScoreError
from .logging_config import configure_logging
from .validation import ValidationError

# Second default devnet account
DEFAULT_USER_ADDRESS = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"


def cmd_keygen(args):
    """Generate an input attestation key and trust store."""
    from .keys import write_key_material

    paths = write_key_material(args.output_dir, kid=args.kid)
    print(f"Signing key saved to: {paths['signing_key']}")
    print(f"Trust store saved to: {paths['trust_store']}")
    return 0


def cmd_account_key(args):
    """Generate a request signing key for an account and register it."""
    from .keys import write_account_key

    paths = write_account_key(args.output_dir, args.address)
    print(f"Account key saved to: {paths['signing_key']}")
    print(f"Registered in: {paths['account_keys']}")
    return 0


def cmd_simulate(args):
    """Deploy on a local devnet and submit the same encrypted inputs each round."""
    from .devnet import LocalDevnet

    net = LocalDevnet(chain_id=args.chain_id)
    contract = net.deploy(DEPLOYER_ADDRESS, threshold=args.threshold)
    user = args.user

    source = "authenticated input" if args.threshold is not None else "default"
    print(f"Deployed EncryptedCreditScore at {contract.address}")
    print(f"Threshold: {source}, protocol id {contract.confidential_protocol_id()}")

    for round_no in range(1, args.rounds + 1):
        enc = (net.create_encrypted_input(contract.address, user)
               .add32(args.income)
               .add32(args.debt_ratio)
               .add32(args.repayment_score)
               .encrypt())
        contract.submit_credit_data(
            user,
            enc.handles[0], enc.input_proof,
            enc.handles[1], enc.input_proof,
            enc.handles[2], enc.input_proof,
        )

        score = net.user_decrypt(contract.get_credit_score(user), user, contract.address)
        qualified = net.user_decrypt(contract.get_qualification_status(user), user, contract.address)
        print(f"Round {round_no}: score={score} qualified={qualified}")

    return 0


def cmd_networks(args):
    """List supported networks."""
    from .protocol import SUPPORTED_NETWORKS

    for network in SUPPORTED_NETWORKS.values():
        print(f"{network.name:<10} chain_id={network.chain_id:<10} protocol_id={network.protocol_id}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="encscore",
        description="Confidential credit scoring engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  encscore keygen --output-dir .
  encscore account-key --address 0x70997970c51812dc3a010c7d01b50e0d17dc79c8
  encscore simulate --income 50000 --debt-ratio 30 --repayment-score 85 --rounds 2
  encscore networks
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # keygen
    keygen_parser = subparsers.add_parser("keygen", help="Generate input attestation keys")
    keygen_parser.add_argument("-o", "--output-dir", default=".", help="Directory for secrets/ and trust/")
    keygen_parser.add_argument("-k", "--kid", default="input-verifier-01", help="Key identifier")

    # account-key
    account_parser = subparsers.add_parser("account-key", help="Generate and register an account request key")
    account_parser.add_argument("-a", "--address", required=True)
    account_parser.add_argument("-o", "--output-dir", default=".", help="Directory for secrets/ and trust/")

    # simulate
    sim_parser = subparsers.add_parser("simulate", help="Score encrypted inputs on a local devnet")
    sim_parser.add_argument("--income", type=int, required=True)
    sim_parser.add_argument("--debt-ratio", type=int, required=True)
    sim_parser.add_argument("--repayment-score", type=int, required=True)
    sim_parser.add_argument("--threshold", type=int, help="Initial threshold (default path if omitted)")
    sim_parser.add_argument("--rounds", type=int, default=1)
    sim_parser.add_argument("--chain-id", type=int, default=31337)
    sim_parser.add_argument("--user", default=DEFAULT_USER_ADDRESS)

    # networks
    subparsers.add_parser("networks", help="List supported networks")

    args = parser.parse_args(argv)
    if is_debug():
        level = "DEBUG"
    elif args.command == "simulate":
        level = "WARNING"
    else:
        level = LOG_LEVEL
    configure_logging(level=level, json_format=LOG_JSON)

    commands = {
        "keygen": cmd_keygen,
        "account-key": cmd_account_key,
        "simulate": cmd_simulate,
        "networks": cmd_networks,
    }
    if args.command not in commands:
        parser.print_help()
        return 2

    try:
        return commands[args.command](args)
    except EncryptedCreditScoreError as e:
        print(f"✗ {type(e).__name__}", file=sys.stderr)
        print(json.dumps(e.to_dict(), indent=2, default=str), file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
