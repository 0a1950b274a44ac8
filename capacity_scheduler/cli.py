# cli.py

"""Command-line interface for the capacity scheduler."""

import argparse
import logging
import signal
import sys
import threading

from .capacity import describe_nodes
from .client import KubernetesClient
from .config import SchedulerConfig
from .exceptions import SchedulerError
from .models import Outcome
from .scheduler import Scheduler
from .utils import format_node_resources, setup_logging

logger = logging.getLogger(__name__)

def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Place unscheduled pods onto nodes with enough free capacity"
    )
    parser.add_argument(
        "--api-host",
        help="Control plane host:port (default: $SCHEDULER_API_HOST or 127.0.0.1:8001)"
    )
    parser.add_argument(
        "--kubeconfig",
        help="Path to a kubeconfig file (default: $SCHEDULER_KUBECONFIG, else --api-host)"
    )
    parser.add_argument(
        "--scheduler-name",
        help="Scheduler identity pods ask for (default: $SCHEDULER_NAME or hightower-scheduler)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--show-resources",
        action="store_true",
        help="Show resources for all nodes and exit"
    )
    mode.add_argument(
        "--best-node",
        action="store_true",
        help="Print the node with the most spare capacity and exit (does not bind)"
    )
    mode.add_argument(
        "--once",
        action="store_true",
        help="Schedule the currently pending pods once and exit"
    )
    return parser.parse_args(argv)

def _install_signal_handlers(stop_event):
    def handle(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stop_event.set()
    signal.signal(signal.SIGTERM, handle)
    signal.signal(signal.SIGINT, handle)

def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = SchedulerConfig.from_env(
            api_host=args.api_host,
            scheduler_name=args.scheduler_name,
            kubeconfig=args.kubeconfig,
        )
        scheduler = Scheduler(KubernetesClient(config), config)

        if args.show_resources:
            nodes, pods = scheduler.snapshot()
            logger.info("Current node resources:")
            for resources in describe_nodes(nodes, pods):
                for line in format_node_resources(resources):
                    logger.info(line)
            return 0

        if args.best_node:
            node = scheduler.best_node()
            print(node.name)
            return 0

        if args.once:
            results = scheduler.reconcile()
            placed = sum(1 for r in results if r.outcome is Outcome.PLACED)
            logger.info(f"Placed {placed} of {len(results)} group(s)")
            return 0

        stop_event = threading.Event()
        _install_signal_handlers(stop_event)
        scheduler.run(stop_event)
        return 0

    except SchedulerError as e:
        logger.error(f"Scheduler error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
