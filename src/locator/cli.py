#!/usr/bin/env python3
"""
CacheIsKing command line

Validates input at the boundary, then asks the location service.

Commands:
  geocode ADDRESS
  reverse LAT LON
  route FROM_LAT FROM_LON TO_LAT TO_LON
  health

Usage:
  TOMTOM_API_KEY=... HERE_API_KEY=... python -m locator geocode "1 Infinite Loop"
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .bootstrap import build_location_service
from .config import load_config
from .models import Coordinates, ValidationError
from .service import LocationService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_INVALID = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="locator", description="Cached location lookups")
    parser.add_argument("--config", default="config/locator.defaults.yml", help="YAML config path")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    geocode = sub.add_parser("geocode", help="address → coordinates")
    geocode.add_argument("address")

    reverse = sub.add_parser("reverse", help="coordinates → address")
    reverse.add_argument("lat", type=float)
    reverse.add_argument("lon", type=float)

    route = sub.add_parser("route", help="route between two points")
    route.add_argument("from_lat", type=float)
    route.add_argument("from_lon", type=float)
    route.add_argument("to_lat", type=float)
    route.add_argument("to_lon", type=float)

    sub.add_parser("health", help="probe every provider")
    return parser


def validate_address(address: str) -> str:
    if not address or not address.strip():
        raise ValidationError("address must not be empty")
    return address


async def run_command(args: argparse.Namespace, service: LocationService) -> dict:
    if args.command == "geocode":
        result = await service.geocode(validate_address(args.address))
        return result.to_dict()
    if args.command == "reverse":
        coords = Coordinates(args.lat, args.lon).validate()
        result = await service.reverse_geocode(coords)
        return result.to_dict()
    if args.command == "route":
        origin = Coordinates(args.from_lat, args.from_lon).validate()
        destination = Coordinates(args.to_lat, args.to_lon).validate()
        result = await service.route(origin, destination)
        return result.to_dict()
    if args.command == "health":
        return await service.get_providers_health()
    raise ValueError(f"unknown command: {args.command}")


async def _run(args: argparse.Namespace) -> dict:
    config = load_config(args.config)
    logger.debug("Running %s with %s", args.command, args.config)
    async with build_location_service(config) as service:
        return await run_command(args, service)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    try:
        payload = asyncio.run(_run(args))
    except ValidationError as e:
        print(f"invalid input: {e}", file=sys.stderr)
        return EXIT_INVALID
    except (FileNotFoundError, ValueError) as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    print(json.dumps(payload, indent=2))
    return EXIT_OK
