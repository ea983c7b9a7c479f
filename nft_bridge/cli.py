#!/usr/bin/env python3
"""
NFT Bridge CLI - Python Implementation
Command-line entry point for the bridge flows

Usage:
  nft-bridge login OWNER NFT TOKEN_ID
  nft-bridge update L2_NFT TOKEN_ID
  nft-bridge deploy L1_NFT [ARG ...]
  nft-bridge call CHAIN ADDRESS FUNCTION [ARG ...]
  nft-bridge reconcile L1_NFT TOKEN_ID
  nft-bridge bindings
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional, Tuple

from .bridge_lib import BridgeConfig, BridgeEnvironment, BridgeLogger, BridgeUtils, ChainRole
from .chain_client import ChainClient
from .code_source import ArtifactCodeSource, CodeSource, ExplorerCodeSource
from .errors import BindingNotFound, BridgeError, BridgeValidationError
from .orchestrator import BridgeOrchestrator, OwnershipRejected, UnsupportedFunction
from .registry import JsonFileContractRegistry

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_REJECTED = 2


def build_orchestrator(config: BridgeConfig) -> BridgeOrchestrator:
    """Wire clients, registry and code source from configuration"""
    l1_client = ChainClient(config.endpoint(ChainRole.L1), rpc_timeout=config.rpc_timeout,
                            receipt_timeout=config.receipt_timeout)
    l2_client = ChainClient(config.endpoint(ChainRole.L2), rpc_timeout=config.rpc_timeout,
                            receipt_timeout=config.receipt_timeout)

    code_source: Optional[CodeSource] = None
    if config.artifacts_dir:
        code_source = ArtifactCodeSource(config.artifacts_dir)
    elif config.explorer_api_url:
        code_source = ExplorerCodeSource(config.explorer_api_url, l1_client, config.explorer_api_key)

    return BridgeOrchestrator(
        l1_client, l2_client,
        JsonFileContractRegistry(config.registry_path),
        code_source=code_source,
        wait_for_receipts=config.wait_for_receipts,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nft-bridge", description="L1 → L2 NFT bridge")
    parser.add_argument("--env-file", help="Path to a .env file (default: ./.env)")
    parser.add_argument("--wait", action="store_true", help="Wait for every transaction receipt")
    parser.add_argument("--show-config", action="store_true", help="Print the loaded configuration")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Verify L1 ownership and mirror the token on L2")
    login.add_argument("owner")
    login.add_argument("nft_address")
    login.add_argument("token_id", type=int)

    update = commands.add_parser("update", help="Push an L2 token URI back to L1")
    update.add_argument("l2_nft_address")
    update.add_argument("token_id", type=int)

    deploy = commands.add_parser("deploy", help="Deploy an L1 contract to L2 and register the binding")
    deploy.add_argument("l1_nft_address")
    deploy.add_argument("constructor_args", nargs="*")

    call = commands.add_parser("call", help="Call a function of a bound contract")
    call.add_argument("chain_type")
    call.add_argument("contract_address")
    call.add_argument("function_name")
    call.add_argument("args", nargs="*")

    reconcile = commands.add_parser("reconcile", help="Set a missing L2 token URI")
    reconcile.add_argument("l1_nft_address")
    reconcile.add_argument("token_id", type=int)

    commands.add_parser("bindings", help="List registered contract bindings")
    return parser


async def run_command(args: argparse.Namespace, orchestrator: BridgeOrchestrator) -> Tuple[int, Any]:
    """Run one command and return (exit code, JSON payload)"""
    if args.command == "login":
        outcome = await orchestrator.login_and_sync(args.owner, args.nft_address, args.token_id)
        code = EXIT_REJECTED if isinstance(outcome, OwnershipRejected) else EXIT_OK
        return code, outcome.to_dict()

    if args.command == "update":
        outcome = await orchestrator.update_l1_from_l2(args.l2_nft_address, args.token_id)
        return EXIT_OK, outcome.to_dict()

    if args.command == "deploy":
        binding = await orchestrator.deploy_and_register(args.l1_nft_address, args.constructor_args)
        return EXIT_OK, {"l1Address": binding.l1_address, "l2Address": binding.l2_address}

    if args.command == "call":
        outcome = await orchestrator.generic_invoke(args.chain_type, args.contract_address,
                                                    args.function_name, args.args)
        code = EXIT_REJECTED if isinstance(outcome, UnsupportedFunction) else EXIT_OK
        return code, outcome.to_dict()

    if args.command == "reconcile":
        outcome = await orchestrator.reconcile(args.l1_nft_address, args.token_id)
        return EXIT_OK, outcome.to_dict() if outcome else {"message": "Already consistent"}

    if args.command == "bindings":
        bindings = await orchestrator.registry.find_all()
        return EXIT_OK, [BridgeUtils.binding_summary(b) for b in bindings]

    raise ValueError(f"Unknown command: {args.command}")


def error_payload(status_code: int, error: Exception) -> Dict[str, Any]:
    return {"statusCode": status_code, "message": str(error), "error": type(error).__name__}


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for the nft-bridge command"""
    args = build_parser().parse_args(argv)

    try:
        config = BridgeEnvironment.load_environment(args.env_file)
    except ValueError as e:
        BridgeLogger.error(f"Failed to load configuration: {e}")
        return EXIT_FAILURE
    if args.wait:
        config.wait_for_receipts = True
    if args.show_config:
        BridgeEnvironment.print_config(config)

    try:
        orchestrator = build_orchestrator(config)
        code, payload = asyncio.run(run_command(args, orchestrator))
    except (BridgeValidationError, BindingNotFound) as e:
        BridgeLogger.error(str(e))
        code, payload = EXIT_REJECTED, error_payload(400, e)
    except BridgeError as e:
        BridgeLogger.error(f"Bridge operation failed: {e}")
        code, payload = EXIT_FAILURE, error_payload(500, e)
    except Exception as e:
        BridgeLogger.error(f"Command failed with exception: {e}")
        import traceback
        BridgeLogger.debug(traceback.format_exc())
        code, payload = EXIT_FAILURE, error_payload(500, e)

    print(json.dumps(payload, indent=2))
    return code


if __name__ == "__main__":
    sys.exit(main())
