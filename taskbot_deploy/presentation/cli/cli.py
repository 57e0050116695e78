"""
CLI Module

Architectural Intent:
- Command-line interface for taskbot-deploy
- Entry point for all operator interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control

Exit Status:
- 0 on success, 1 on any ProvisioningError or aborted confirmation
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
import traceback
from typing import Optional
from taskbot_deploy.application.dtos.provision_dtos import (
    ProvisionRequest,
    ProvisionResponse,
    TeardownRequest,
)
from taskbot_deploy.composition_root import (
    TaskbotDeployContainer,
    create_container,
)
from taskbot_deploy.domain.entities.deployment_config import TlsMode
from taskbot_deploy.domain.entities.deployment_state import DeploymentState
from taskbot_deploy.domain.entities.provisioning import ProvisioningMode
from taskbot_deploy.domain.errors import ProvisioningError
from taskbot_deploy.domain.services.tls_selection import TlsModeSelector
from taskbot_deploy.domain.value_objects.provision_answers import ProvisionAnswers
from taskbot_deploy.infrastructure.config import TaskbotDeployConfig, load_config
from taskbot_deploy.infrastructure.logging import configure_logging
from taskbot_deploy.presentation.cli.prompts import Prompter

RESET_WARNING = (
    "This removes every Taskbot container AND all data volumes "
    "(databases, uploads, licence state). Continue?"
)


class Aborted(ProvisioningError):
    """The operator declined a confirmation."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskbot-deploy",
        description="Provision and manage a self-hosted Taskbot stack",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--log-json", action="store_true", help="Emit logs as JSON lines on stderr"
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to taskbot-deploy.json (default: ./taskbot-deploy.json)",
    )
    parser.add_argument("--dir", help="Deployment directory (overrides config)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    answers = argparse.ArgumentParser(add_help=False)
    answers.add_argument("--host", help="Public domain name or IP address")
    answers.add_argument("--license-token", help="Taskbot licence token")
    answers.add_argument(
        "--tls",
        choices=[m.value.replace("_", "-") for m in TlsMode],
        help="TLS mode (skips the TLS questions)",
    )
    answers.add_argument(
        "--cert", help="Certificate (fullchain) file for --tls user-provided"
    )
    answers.add_argument("--key", help="Private key file for --tls user-provided")
    answers.add_argument(
        "--no-uploads", action="store_true", help="Do not serve /uploads/ from nginx"
    )
    answers.add_argument(
        "--non-interactive", action="store_true",
        help="Never prompt; unanswered values come from state or defaults",
    )
    answers.add_argument(
        "--yes", "-y", action="store_true", help="Assume yes for confirmations"
    )

    subparsers.add_parser(
        "install", parents=[answers],
        help="Install Taskbot, or update/reset an existing installation",
    )
    subparsers.add_parser(
        "update", parents=[answers],
        help="Re-render configuration and restart, keeping data and secrets",
    )
    subparsers.add_parser(
        "reset", parents=[answers],
        help="Destroy all data and secrets, then install from scratch",
    )
    subparsers.add_parser(
        "render", parents=[answers],
        help="Write configuration files without touching containers",
    )

    down_parser = subparsers.add_parser("down", help="Stop the Taskbot stack")
    down_parser.add_argument(
        "--volumes", action="store_true", help="Also remove all data volumes"
    )
    down_parser.add_argument(
        "--yes", "-y", action="store_true", help="Assume yes for confirmations"
    )

    subparsers.add_parser("status", help="Show the state of every service")
    return parser


def collect_answers(
    args: argparse.Namespace,
    previous: Optional[DeploymentState],
    prompter: Optional[Prompter],
) -> ProvisionAnswers:
    """
    Flags win; prompts only fill what flags left open. Without a prompter
    every unanswered field stays None for the renderer to resolve.
    """
    previous = previous or DeploymentState()
    host = args.host
    token = args.license_token
    tls_mode = args.tls
    cert_path, key_path = args.cert, args.key

    if prompter is not None:
        if host is None:
            host = prompter.ask(
                "Public domain name or IP address of this server",
                default=previous.public_host or "localhost",
            )
        if token is None:
            token = prompter.secret(
                "Taskbot licence token", has_current=bool(previous.license_token)
            )
        if tls_mode is None:
            keep = previous.tls_mode is not None and prompter.confirm(
                f"Keep the current TLS setup ({previous.tls_mode})?", default=True
            )
            if not keep:
                tls = TlsModeSelector().select(prompter)
                tls_mode = tls.mode.value
                cert_path, key_path = tls.cert_path, tls.key_path

    return ProvisionAnswers(
        public_host=host,
        license_token=token,
        tls_mode=tls_mode,
        cert_path=cert_path,
        key_path=key_path,
        serve_uploads=False if args.no_uploads else None,
    )


def confirm_destroy(args: argparse.Namespace, prompter: Optional[Prompter]) -> None:
    if args.yes:
        return
    if prompter is None:
        raise Aborted(
            "Refusing to destroy data without --yes in non-interactive mode"
        )
    if not prompter.confirm(RESET_WARNING, default=False):
        raise Aborted("Aborted, nothing was changed")


async def choose_mode(
    args: argparse.Namespace,
    container: TaskbotDeployContainer,
    previous: Optional[DeploymentState],
    prompter: Optional[Prompter],
) -> ProvisioningMode:
    if args.command == "reset":
        return ProvisioningMode.RESET
    if args.command in ("update", "render"):
        return ProvisioningMode.UPDATE

    running = await container.lifecycle.detect_existing()
    if not running and previous is None:
        return ProvisioningMode.INSTALL

    print("[*] An existing Taskbot installation was found.")
    if prompter is None:
        print("[*] Updating it in place; data volumes are kept.")
        return ProvisioningMode.UPDATE

    choice = prompter.choose(
        "What should happen to it?",
        {"u": "update (keep data)", "r": "reset (delete all data)", "a": "abort"},
        default="u",
    )
    if choice == "a":
        raise Aborted("Aborted, nothing was changed")
    return ProvisioningMode.RESET if choice == "r" else ProvisioningMode.UPDATE


def print_provision_result(response: ProvisionResponse) -> None:
    for service in response.skipped_services:
        print(f"[*] Warning: optional service '{service}' was not started "
              "(image unavailable)")
    if response.certificate_generated:
        print("[*] Generated a self-signed certificate; browsers will show a warning.")
    if response.host_snippet:
        print("[*] ACTION REQUIRED: add the following to your host's nginx "
              "configuration and reload it:")
        print(response.host_snippet)
    if response.services:
        print(f"[+] {response.message}: {len(response.services)} services up.")
        print(f"[+] Taskbot is available at {response.public_url}")
    else:
        print(f"[+] {response.message}: {len(response.artifacts)} files written.")


async def run_provision(
    args: argparse.Namespace, container: TaskbotDeployContainer
) -> None:
    interactive = not args.non_interactive and sys.stdin.isatty()
    prompter = Prompter() if interactive else None
    previous = container.state_repository.load()

    mode = await choose_mode(args, container, previous, prompter)
    if mode == ProvisioningMode.RESET:
        confirm_destroy(args, prompter)

    answers = collect_answers(args, previous, prompter)
    request = ProvisionRequest(
        answers=answers,
        mode=mode,
        start_stack=args.command != "render",
        confirmed_destroy=mode == ProvisioningMode.RESET,
    )

    print(f"[*] Running {mode.value} in {container.artifact_store.root}...")
    response = await container.provision.execute(request)
    print_provision_result(response)


async def run_down(
    args: argparse.Namespace, container: TaskbotDeployContainer
) -> None:
    if args.volumes:
        prompter = Prompter() if sys.stdin.isatty() else None
        confirm_destroy(args, prompter)
    request = TeardownRequest(
        destroy_volumes=args.volumes, confirmed_destroy=args.volumes
    )
    existed = await container.teardown.execute(request)
    if existed:
        print("[+] Taskbot stack stopped.")
    else:
        print("[*] No running Taskbot containers found.")
    if args.volumes:
        print("[+] Data volumes and deployment state removed.")


async def run_status(container: TaskbotDeployContainer) -> None:
    status = await container.status.execute()
    if not status.deployed:
        print("[*] Taskbot is not deployed here.")
        return
    if status.public_url:
        print(f"[*] {status.public_url} (TLS: {status.tls_mode})")
    if not status.services:
        print("[*] No containers are running.")
    for service in status.services:
        print(f"  - {service}")


async def async_main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # flags win over the configured log_level
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = None
    configure_logging(level=level or logging.WARNING, json_format=args.log_json)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = load_config(args.config)
        if args.dir:
            config = _with_directory(config, args.dir)
        container = create_container(config)
    except ValueError as e:
        print(f"[-] Invalid configuration: {e}")
        return 1
    if level is None:
        configure_logging(level=config.logging_level, json_format=args.log_json)
    await container.telemetry.initialize()

    try:
        if args.command in ("install", "update", "reset", "render"):
            await run_provision(args, container)
        elif args.command == "down":
            await run_down(args, container)
        elif args.command == "status":
            await run_status(container)
    except ProvisioningError as e:
        print(f"[-] {e}")
        if args.debug:
            traceback.print_exc()
        return 1
    except KeyboardInterrupt:
        print("\n[-] Interrupted.")
        return 1
    except Exception as e:
        print(f"[-] Unexpected failure: {e}")
        if args.verbose or args.debug:
            traceback.print_exc()
        return 1
    finally:
        await container.telemetry.shutdown()
    return 0


def _with_directory(
    config: TaskbotDeployConfig, directory: str
) -> TaskbotDeployConfig:
    return dataclasses.replace(
        config, install=dataclasses.replace(config.install, directory=directory)
    )


def main():
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
