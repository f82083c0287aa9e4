"""Command-line interface for repo-provisioner."""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass
from typing import Optional

from .config import AppConfig, load_config
from .credentials import JsonSSHKeyRegistry
from .errors import ProvisionError
from .gitops import (
    KnownHostsRegistrar,
    LocalCloneExecutor,
    LocalTarget,
    RemoteCloneScriptBuilder,
    RemoteTarget,
    RepositoryProvisioner,
    RepositoryReference,
    is_http_reference,
    parse_ssh_location,
)
from .paths import ProvisionPaths
from .ssh import SSHRemoteRunner
from .utils.logging import get_logger


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig
    local_paths: ProvisionPaths
    remote_paths: ProvisionPaths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-provisioner",
        description="Clone git repositories locally or on managed servers.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_parser = subparsers.add_parser(
        "parse", help="Show how a repository reference is interpreted"
    )
    parse_parser.add_argument("reference", help="Git repository URL or shorthand")

    clone_parser = subparsers.add_parser("clone", help="Clone a repository branch")
    clone_parser.add_argument("--app-name", required=True, help="Application name")
    clone_parser.add_argument("--url", default=None, help="Git repository URL")
    clone_parser.add_argument("--branch", default=None, help="Branch to check out")
    clone_parser.add_argument("--ssh-key-id", default=None, help="Deploy key id")
    clone_parser.add_argument(
        "--compose", action="store_true",
        help="Clone into the compose tree instead of the applications tree",
    )
    clone_parser.add_argument(
        "--log-file", default=None,
        help="Deployment log to append to (default: <base>/logs/<app>-clone.log)",
    )
    clone_parser.add_argument(
        "--server", default=None,
        help="Clone on this configured server instead of locally",
    )
    clone_parser.add_argument(
        "--print-script", action="store_true",
        help="With --server, print the generated script instead of running it",
    )
    clone_parser.add_argument(
        "--raw", action="store_true",
        help="Compose-tree clone without deployment log or submodules",
    )

    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    return CLIContext(
        config=config,
        local_paths=ProvisionPaths.local(config.paths.base_dir),
        remote_paths=ProvisionPaths.remote(config.paths.remote_base_dir),
    )


def build_provisioner(context: CLIContext) -> RepositoryProvisioner:
    config = context.config
    strict = config.credentials.strict_bookkeeping
    bookkeeper = JsonSSHKeyRegistry(context.local_paths.key_registry_path)
    runner = SSHRemoteRunner(config.server_credentials())

    local_executor = LocalCloneExecutor(
        context.local_paths,
        base_environment=dict(os.environ),
        bookkeeper=bookkeeper,
        registrar=KnownHostsRegistrar(
            context.local_paths.known_hosts_path,
            keyscan_binary=config.git.keyscan_binary,
            timeout=config.git.keyscan_timeout,
        ),
        git_binary=config.git.git_binary,
        strict_bookkeeping=strict,
    )
    remote_builder = RemoteCloneScriptBuilder(
        context.remote_paths,
        runner=runner,
        registrar=KnownHostsRegistrar(
            context.remote_paths.known_hosts_path,
            keyscan_binary=config.git.keyscan_binary,
        ),
        git_binary=config.git.git_binary,
    )
    return RepositoryProvisioner(
        local_executor,
        remote_builder,
        runner,
        bookkeeper=bookkeeper,
        strict_bookkeeping=strict,
    )


def handle_parse_command(args: argparse.Namespace) -> int:
    reference = args.reference
    if is_http_reference(reference):
        payload = {"transport": "http", "url": reference}
    else:
        payload = {"transport": "ssh", **parse_ssh_location(reference).to_payload()}
    print(json.dumps(payload, indent=2))
    return 0


def handle_clone_command(args: argparse.Namespace, context: CLIContext) -> int:
    provisioner = build_provisioner(context)
    reference = RepositoryReference(
        app_name=args.app_name,
        url=args.url,
        branch=args.branch,
        ssh_key_id=args.ssh_key_id,
    )
    target = RemoteTarget(args.server) if args.server else LocalTarget()

    if args.raw:
        provisioner.clone_raw(reference, target)
        print(f"✅ Cloned {args.url}")
        return 0

    paths = context.remote_paths if args.server else context.local_paths
    log_path = args.log_file or paths.clone_log_path(args.app_name)

    if args.server and args.print_script:
        assert isinstance(target, RemoteTarget)
        print(provisioner.remote_builder.build(reference, target, log_path, compose=args.compose))
        return 0

    provisioner.provision(reference, target, log_path, compose=args.compose)
    print(f"✅ Cloned {args.url} ({args.branch}), log: {log_path}")
    return 0


def dispatch_command(args: argparse.Namespace) -> int:
    if args.command == "parse":
        return handle_parse_command(args)

    context = _build_context(args)
    if args.command == "clone":
        return handle_clone_command(args, context)

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "clone" and args.print_script and not args.server:
        parser.error("--print-script requires --server")
    logger = get_logger("repo_provisioner", verbose=args.verbose)
    try:
        return dispatch_command(args)
    except (ProvisionError, FileNotFoundError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"❌ {exc}", file=sys.stderr)
        return 1
