#!/usr/bin/env python3
"""
fleetops Demo

Run this script to watch the maintenance jobs roll platform versions out
across a simulated fleet.

Usage:
    python run_demo.py              # Run with default settings (14 days)
    python run_demo.py --full       # Run a longer simulation (60 days)
    python run_demo.py --quick      # Run a quick demo (3 days)
"""

import argparse
import logging

from fleetops.simulator import FleetSimulator, SimulationConfig


def print_banner():
    """Print fleetops banner."""
    print("""
╔═══════════════════════════════════════════════════════════════════╗
║                                                                   ║
║   fleetops: Platform Version Rollout for a Hosted Fleet           ║
║                                                                   ║
║   Maintenance jobs:                                               ║
║   1. Upgrader - confidence-tiered, throttled platform upgrades    ║
║   2. DeploymentUpgrader - nightly upgrades of dev/perf zones      ║
║                                                                   ║
╚═══════════════════════════════════════════════════════════════════╝
""")


def run_demo(num_days: int = 14, num_applications: int = 40, upgrades_per_minute: float = 0.125, seed: int = 7):
    """
    Run the fleetops demonstration.

    Args:
        num_days: Number of days to simulate
        num_applications: Size of the simulated fleet
        upgrades_per_minute: Rollout rate knob
        seed: Random seed for reproducibility
    """
    print_banner()

    config = SimulationConfig(
        num_applications=num_applications,
        num_days=num_days,
        upgrades_per_minute=upgrades_per_minute,
        random_seed=seed,
    )
    simulator = FleetSimulator(config)
    results = simulator.run_simulation()
    simulator.print_report(results)
    return results


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="fleetops Demo - Simulate Platform Rollouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_demo.py              Run default demo (14 days)
  python run_demo.py --full       Run a longer simulation (60 days)
  python run_demo.py --quick      Run a quick demo (3 days)
  python run_demo.py -n 100       Simulate 100 applications
        """
    )
    parser.add_argument("-d", "--days", type=int, default=14, help="Number of days to simulate (default: 14)")
    parser.add_argument("-n", "--num-applications", type=int, default=40,
                        help="Number of applications in the fleet (default: 40)")
    parser.add_argument("--rate", type=float, default=0.125, help="Upgrades per minute (default: 0.125)")
    parser.add_argument("--full", action="store_true", help="Run a longer simulation (60 days)")
    parser.add_argument("--quick", action="store_true", help="Run a quick demo (3 days)")
    parser.add_argument("--seed", type=int, default=7, help="Random seed for reproducibility (default: 7)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log maintenance decisions")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.full:
        num_days = 60
    elif args.quick:
        num_days = 3
    else:
        num_days = args.days

    run_demo(num_days=num_days, num_applications=args.num_applications,
             upgrades_per_minute=args.rate, seed=args.seed)


if __name__ == "__main__":
    main()
