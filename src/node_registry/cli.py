#!/usr/bin/env python3
"""
Node Registry CLI — maintain node records in local and remote registries.

Usage:
    node-registry generate -k KEY_FILE [-f FILE] [-U STATUS_URL] [--metadata k=v ...] [--force]
    node-registry add IDENTITY [-U URL] [--endpoint E ...] [-k KEY_FILE ...]
                      [--display-name NAME] [--metadata k=v ...] [--dry-run] [--from-remote]

Examples:
    # Publish this node's record into ./nodes.yaml
    node-registry generate -k ~/.keys/node.pub --metadata organization=acme

    # Register a node with a remote registry
    node-registry add node-1 --endpoint tcps://node-1:8044 -k node-1.pub

    # Change only the metadata of a registered node
    node-registry add node-1 --from-remote --metadata region=eu
"""

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config import RegistryConfig
from .errors import RegistryCliError
from .remote_client import RestRegistryClient
from .workflows import RegistrySyncWorkflow

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s' if verbose else '%(message)s'
    )
    # Quiet down noisy loggers
    if not verbose:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("fsspec").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="node-registry",
        description="Maintain node records in local and remote registries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s generate -k node.pub --metadata organization=acme
  %(prog)s add node-1 --endpoint tcps://node-1:8044 -k node-1.pub
  %(prog)s add node-1 --from-remote --dry-run
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--config", help="YAML config file with a 'registry' section")
    parser.add_argument("--auth-token", help="Bearer token for the registry API")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # generate command
    generate_parser = subparsers.add_parser(
        "generate", help="Add this node's record to a local registry file"
    )
    generate_parser.add_argument("-f", "--file", help="Registry file (default: ./nodes.yaml)")
    generate_parser.add_argument(
        "-U", "--status-url", dest="url", help="URL of the node to query for its status"
    )
    generate_parser.add_argument(
        "-k", "--key-file", dest="key_files", action="append", required=True,
        help="Public key file of the node (repeatable)"
    )
    generate_parser.add_argument(
        "--metadata", action="append", help="Metadata entry key=value (repeatable)"
    )
    generate_parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing node with the same identity"
    )

    # add command
    add_parser = subparsers.add_parser("add", help="Add or update a node in a remote registry")
    add_parser.add_argument("identity", help="Identity of the node")
    add_parser.add_argument("-U", "--url", help="URL of the registry API")
    add_parser.add_argument(
        "--endpoint", dest="endpoints", action="append", help="Node endpoint (repeatable)"
    )
    add_parser.add_argument(
        "-k", "--key-file", dest="key_files", action="append",
        help="Public key file of the node (repeatable)"
    )
    add_parser.add_argument("--display-name", help="Display name (default: identity)")
    add_parser.add_argument(
        "--metadata", action="append", help="Metadata entry key=value (repeatable)"
    )
    add_parser.add_argument(
        "--dry-run", action="store_true", help="Validate and print the node without sending it"
    )
    add_parser.add_argument(
        "--from-remote", action="store_true",
        help="Start from the node already in the registry and override the given fields"
    )

    return parser


def run_generate(args, config: RegistryConfig) -> int:
    """Run the generate command."""
    client = RestRegistryClient(config.url, auth=config.auth_token)
    workflow = RegistrySyncWorkflow(client)

    record = workflow.generate(
        key_files=args.key_files,
        metadata=args.metadata,
        path=config.registry_file,
        force=args.force,
    )
    print(record.describe())
    return 0


def run_add(args, config: RegistryConfig) -> int:
    """Run the add command."""
    client = RestRegistryClient(config.url, auth=config.auth_token)
    workflow = RegistrySyncWorkflow(client)

    record = workflow.add(
        args.identity,
        endpoints=args.endpoints,
        key_files=args.key_files,
        display_name=args.display_name,
        metadata=args.metadata,
        dry_run=args.dry_run,
        from_remote=args.from_remote,
    )
    print(record.describe())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    config = RegistryConfig.from_env(args.config).with_overrides(
        url=args.url,
        auth_token=args.auth_token,
        registry_file=getattr(args, "file", None),
    )

    try:
        if args.command == "generate":
            return run_generate(args, config)
        elif args.command == "add":
            return run_add(args, config)
    except RegistryCliError as e:
        logger.error(f"Error: {e}")
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
