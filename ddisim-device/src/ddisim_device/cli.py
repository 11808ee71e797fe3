"""Command-line interface for ddisim.

Usage:
    # Simulate one device with an existing credential
    ddisim simulate --url http://localhost:8081 --controller-id dev-01 --gateway-token s3cr3t

    # Register the device through the Management API, then simulate it
    ddisim register --url http://localhost:8081 --mgmt-url http://localhost:8080 \
        --controller-id dev-01 --username admin --password admin

    # Register and simulate device-001 .. device-025
    ddisim multi --url http://localhost:8081 --mgmt-url http://localhost:8080 \
        --prefix device --count 25 --username admin --password admin

    # One-off requests
    ddisim poll --url http://localhost:8081 --controller-id dev-01 --target-token abc
    ddisim send-config --url http://localhost:8081 --controller-id dev-01 \
        --target-token abc -a hw.revision=B2 --mode merge
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import copy
import dataclasses
import logging
import sys
from datetime import datetime, timezone

from ddisim_client import (
    ConfigData,
    ConfigDataMode,
    DdiClient,
    DdiClientConfig,
    DdiError,
    ManagementClient,
    ManagementConfig,
)

from ddisim_device.config import SimulatorConfig, load_simulator_config
from ddisim_device.fleet import (
    fleet_controller_ids,
    install_signal_handlers,
    register_devices,
    run_fleet,
)
from ddisim_device.simulator import DeviceSimulator

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_attribute(value: str) -> tuple[str, str]:
    """Parse a key=value device attribute."""
    key, sep, val = value.partition("=")
    if not sep or not key or not val:
        raise argparse.ArgumentTypeError(f"Attribute must be key=value, got '{value}'")
    return key, val


def build_client_config(args: argparse.Namespace) -> DdiClientConfig:
    """Build the DDI client configuration from connection options."""
    return DdiClientConfig(
        base_url=args.url,
        controller_id=args.controller_id,
        tenant=args.tenant,
        username=getattr(args, "username", None),
        password=getattr(args, "password", None),
        gateway_token=getattr(args, "gateway_token", None),
        target_token=getattr(args, "target_token", None),
    )


def build_simulator_config(args: argparse.Namespace) -> SimulatorConfig:
    """Build the simulator configuration.

    Values come from --config (if given) and are overridden by command-line
    flags. Device attributes are merged: file or defaults, then device.os,
    then every --attribute.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If a value is invalid.
    """
    config = load_simulator_config(args.config) if args.config else SimulatorConfig()

    overrides: dict[str, object] = {}
    if args.interval is not None:
        overrides["polling_interval"] = args.interval
    if args.auto_confirm is not None:
        overrides["auto_confirm"] = args.auto_confirm

    attributes = dict(config.device_attributes)
    attributes.setdefault("device.os", sys.platform)
    attributes.update(dict(args.attribute or []))
    overrides["device_attributes"] = attributes

    return dataclasses.replace(config, **overrides)


async def _simulate(client_config: DdiClientConfig, sim_config: SimulatorConfig) -> None:
    async with DdiClient(client_config) as client:
        simulator = DeviceSimulator(client, sim_config)
        install_signal_handlers([simulator])
        await simulator.run()


def _print_config(client_config: DdiClientConfig, sim_config: SimulatorConfig) -> None:
    print("-" * 52)
    print(f"Server:       {client_config.base_url}")
    print(f"Tenant:       {client_config.tenant}")
    print(f"Controller:   {client_config.controller_id}")
    print(f"Auth:         {client_config.auth_scheme or '(none)'}")
    print(f"Interval:     {sim_config.polling_interval}s")
    print(f"Auto-Confirm: {'Yes' if sim_config.auto_confirm else 'No'}")
    print("-" * 52)


def cmd_simulate(args: argparse.Namespace) -> int:
    """Simulate one device with the given credentials."""
    try:
        client_config = build_client_config(args)
        sim_config = build_simulator_config(args)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1

    if client_config.auth_scheme is None:
        logger.warning("No credentials given; requests will be sent unauthenticated")

    _print_config(client_config, sim_config)
    asyncio.run(_simulate(client_config, sim_config))
    return 0


async def _register_and_simulate(args: argparse.Namespace, sim_config: SimulatorConfig) -> int:
    mgmt_config = ManagementConfig(args.mgmt_url, args.username, args.password)
    logger.info("Registering device: %s", args.controller_id)
    async with ManagementClient(mgmt_config) as mgmt:
        try:
            target = await mgmt.get_or_create_target(
                args.controller_id,
                args.name or args.controller_id,
                f"Simulator device created at {datetime.now(timezone.utc).isoformat()}",
            )
        except DdiError as exc:
            logger.error("Registration failed: %s", exc)
            return 1

    logger.info("Device registered! Token: %s...", target.security_token[:8])

    client_config = DdiClientConfig(
        base_url=args.url,
        controller_id=args.controller_id,
        tenant=args.tenant,
        target_token=target.security_token,
    )
    _print_config(client_config, sim_config)
    await _simulate(client_config, sim_config)
    return 0


def cmd_register(args: argparse.Namespace) -> int:
    """Register a device via the Management API and simulate it."""
    try:
        sim_config = build_simulator_config(args)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1

    return asyncio.run(_register_and_simulate(args, sim_config))


async def _run_multi(
    args: argparse.Namespace, controller_ids: list[str], sim_config: SimulatorConfig
) -> int:
    mgmt_config = ManagementConfig(args.mgmt_url, args.username, args.password)
    logger.info("Registering %d devices...", len(controller_ids))
    async with ManagementClient(mgmt_config) as mgmt:
        tokens = await register_devices(mgmt, controller_ids)

    if not tokens:
        logger.error("No devices registered successfully")
        return 1

    async with contextlib.AsyncExitStack() as stack:
        simulators: list[DeviceSimulator] = []
        for controller_id, token in tokens.items():
            client = await stack.enter_async_context(
                DdiClient(
                    DdiClientConfig(
                        base_url=args.url,
                        controller_id=controller_id,
                        tenant=args.tenant,
                        target_token=token,
                    )
                )
            )
            simulators.append(DeviceSimulator(client, copy.deepcopy(sim_config)))

        install_signal_handlers(simulators)
        await run_fleet(simulators)
    return 0


def cmd_multi(args: argparse.Namespace) -> int:
    """Register and simulate several devices concurrently."""
    try:
        controller_ids = fleet_controller_ids(args.prefix, args.count)
        sim_config = build_simulator_config(args)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1

    print("-" * 52)
    print(f"DDI Server:  {args.url}")
    print(f"Mgmt Server: {args.mgmt_url}")
    print(f"Prefix:      {args.prefix}")
    print(f"Count:       {args.count}")
    print("-" * 52)

    return asyncio.run(_run_multi(args, controller_ids, sim_config))


async def _poll(client_config: DdiClientConfig) -> int:
    async with DdiClient(client_config) as client:
        try:
            response = await client.get_controller_base()
        except DdiError as exc:
            print(f"Poll failed: {exc}")
            return 1

    print("Controller Base Response:")
    print("-" * 50)
    if response.polling_sleep:
        print(f"Polling Interval: {response.polling_sleep}")

    print("\nAvailable Links:")
    if not response.links:
        print("  (none)")
    for name, link in response.links.items():
        print(f"  {name}: {link.href}")
    print("-" * 50)
    return 0


def cmd_poll(args: argparse.Namespace) -> int:
    """Poll once and print the pending links."""
    try:
        client_config = build_client_config(args)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    return asyncio.run(_poll(client_config))


async def _send_config(client_config: DdiClientConfig, data: ConfigData) -> int:
    async with DdiClient(client_config) as client:
        try:
            await client.put_config_data(data)
        except DdiError as exc:
            print(f"Failed to send config data: {exc}")
            return 1

    print("Config data sent successfully")
    return 0


def cmd_send_config(args: argparse.Namespace) -> int:
    """Send device attributes once."""
    try:
        client_config = build_client_config(args)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    data = ConfigData(mode=ConfigDataMode(args.mode), data=dict(args.attribute))
    return asyncio.run(_send_config(client_config, data))


def _connection_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--url", "-u", required=True, help="DDI server URL (e.g., http://localhost:8081)")
    parser.add_argument("--controller-id", "-c", required=True, help="Device controller ID")
    parser.add_argument("--tenant", "-t", default="default", help="Tenant (default: default)")
    return parser


def _auth_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--username", help="Basic auth username")
    parser.add_argument("--password", help="Basic auth password")
    parser.add_argument("--gateway-token", help="Gateway security token")
    parser.add_argument("--target-token", help="Target security token")
    return parser


def _simulation_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "--interval", "-i", type=int, default=None,
        help="Initial polling interval in seconds (default: 10, or from --config)"
    )
    parser.add_argument(
        "--auto-confirm", action=argparse.BooleanOptionalAction, default=None,
        help="Automatically confirm pending actions (default: on)"
    )
    parser.add_argument(
        "--attribute", "-a", type=parse_attribute, action="append", default=[],
        help="Device attribute key=value (repeatable)"
    )
    parser.add_argument("--config", help="Simulator config YAML file")
    return parser


def _management_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--url", "-u", required=True, help="DDI server URL")
    parser.add_argument("--mgmt-url", required=True, help="Management API URL")
    parser.add_argument("--tenant", "-t", default="default", help="Tenant (default: default)")
    parser.add_argument("--username", required=True, help="Management API username")
    parser.add_argument("--password", required=True, help="Management API password")
    return parser


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ddisim",
        description="Eclipse hawkBit DDI device simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--debug", "-v", "--verbose", dest="debug", action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser(
        "simulate",
        parents=[_connection_parser(), _auth_parser(), _simulation_parser()],
        help="Start device simulation",
    )

    register_parser = subparsers.add_parser(
        "register",
        parents=[_management_parser(), _simulation_parser()],
        help="Register device via Management API and start simulation",
    )
    register_parser.add_argument("--controller-id", "-c", required=True, help="Device controller ID")
    register_parser.add_argument("--name", "-n", help="Device display name")

    multi_parser = subparsers.add_parser(
        "multi",
        parents=[_management_parser(), _simulation_parser()],
        help="Run multiple device simulators concurrently",
    )
    multi_parser.add_argument(
        "--prefix", required=True,
        help='Device ID prefix ("device" creates device-001, device-002, ...)'
    )
    multi_parser.add_argument("--count", type=int, required=True, help="Number of devices")

    subparsers.add_parser(
        "poll",
        parents=[_connection_parser(), _auth_parser()],
        help="Poll once and show pending actions",
    )

    send_config_parser = subparsers.add_parser(
        "send-config",
        parents=[_connection_parser(), _auth_parser()],
        help="Send device attributes",
    )
    send_config_parser.add_argument(
        "--attribute", "-a", type=parse_attribute, action="append", required=True,
        help="Device attribute key=value (repeatable)"
    )
    send_config_parser.add_argument(
        "--mode", "-m", choices=[mode.value for mode in ConfigDataMode], default="merge",
        help="Update mode (default: merge)"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    if args.command == "simulate":
        return cmd_simulate(args)
    elif args.command == "register":
        return cmd_register(args)
    elif args.command == "multi":
        return cmd_multi(args)
    elif args.command == "poll":
        return cmd_poll(args)
    elif args.command == "send-config":
        return cmd_send_config(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
