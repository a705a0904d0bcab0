# File: src/parkpool/main.py
"""
Demo entry point for the Parking Spot Allocation Engine

Builds a lot (the default Downtown Parking layout or a YAML config),
parks and exits a handful of vehicles, then runs a concurrent burst of
arrivals and prints availability reports along the way.
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional
import argparse
import logging
import os
import sys
import time

from .application.config import ParkingLotConfig
from .application.dtos import ParkingLotSnapshotDTO
from .application.parking_service import ParkingService, ParkingServiceFactory
from .domain.models import ParkingTicket, Vehicle
from .domain.strategies import SpotFindingStrategy


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Setup application logging configuration"""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )
    return logging.getLogger("parkpool")


def format_snapshot(snapshot: ParkingLotSnapshotDTO) -> str:
    """Render an availability report"""
    lines = [
        "=" * 50,
        f"Parking Lot: {snapshot.name}",
        "=" * 50,
    ]
    for floor in snapshot.floors:
        lines.append(
            f"Floor {floor.floor_number} [Available: {floor.available_spots}/{floor.total_spots}] "
            f"({floor.strategy})"
        )
        for size, count in floor.available_by_size.items():
            lines.append(f"  {size.title()} spots: {count}")
    lines.append(f"\nActive Vehicles: {snapshot.active_tickets}")
    lines.append("=" * 50)
    return "\n".join(lines)


class ParkingDemo:
    """Runs the scripted demo against one ParkingService"""

    def __init__(self, service: ParkingService, logger: logging.Logger):
        self.service = service
        self.logger = logger

    def show_availability(self, title: str) -> None:
        print(f"\n>>> {title}")
        print(format_snapshot(self.service.snapshot()))

    def demonstrate_parking(self) -> None:
        vehicles = [
            Vehicle.motorcycle("MH-01-1234"),
            Vehicle.car("KA-05-5678"),
            Vehicle.car("DL-03-9999"),
            Vehicle.bus("MH-12-BUS1"),
            Vehicle.motorcycle("GJ-01-4567"),
        ]
        tickets = [self.service.park_vehicle(vehicle) for vehicle in vehicles]
        self.show_availability("PARKING STATUS AFTER CHECK-INS")

        time.sleep(0.1)
        for ticket in tickets[:2]:
            if ticket is not None:
                fee = self.service.exit_vehicle(ticket.ticket_id)
                print(f"  {ticket.vehicle} paid {fee.format()}")
        self.show_availability("PARKING STATUS AFTER SOME EXITS")

    def demonstrate_concurrent_parking(self, arrivals: int, workers: int) -> None:
        vehicles = [Vehicle.car(f"CC-{index:04d}") for index in range(1, arrivals + 1)]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results: List[Optional[ParkingTicket]] = list(
                executor.map(self.service.park_vehicle, vehicles)
            )

        parked = sum(1 for ticket in results if ticket is not None)
        self.logger.info(f"Concurrent arrivals: {arrivals}, parked: {parked}, turned away: {arrivals - parked}")
        self.service.parking_lot.validate_invariants()
        self.show_availability("PARKING STATUS AFTER CONCURRENT ARRIVALS")

    def run(self, arrivals: int, workers: int) -> None:
        self.show_availability("INITIAL PARKING LOT STATUS")
        self.demonstrate_parking()
        self.demonstrate_concurrent_parking(arrivals, workers)
        print(f"\nTotal revenue: {self.service.total_revenue.format()}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Parking spot allocation demo')
    parser.add_argument('--config', type=Path, default=None,
                        help='YAML lot configuration (default: built-in Downtown Parking layout)')
    parser.add_argument('--strategy', choices=[s.value for s in SpotFindingStrategy], default=None,
                        help='Override the spot-finding strategy on every floor')
    parser.add_argument('--arrivals', type=int, default=20,
                        help='Number of concurrent car arrivals (default: 20)')
    parser.add_argument('--workers', type=int, default=8,
                        help='Worker threads for concurrent arrivals (default: 8)')
    parser.add_argument('--log-level', default='INFO',
                        help='Logging level (default: INFO)')
    parser.add_argument('--log-file', default=None,
                        help='Also write logs to this file, e.g. logs/parkpool.log')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the demo"""
    args = build_parser().parse_args(argv)
    logger = setup_logging(args.log_level, args.log_file)

    try:
        config = ParkingLotConfig.from_yaml(args.config) if args.config else ParkingLotConfig.default()
        service = ParkingServiceFactory.create_from_config(config)
        if args.strategy:
            service.set_spot_finding_strategy(SpotFindingStrategy(args.strategy))

        ParkingDemo(service, logger).run(args.arrivals, args.workers)
    except Exception as e:
        logger.error(f"Fatal error in main: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
