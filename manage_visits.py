#!/usr/bin/env python3
"""
Visit log maintenance script:
- print the full statistics report
- compare the stored visit counter with the real number of records
- show how a raw User-Agent string is classified
"""

import argparse
import json
import logging
from pathlib import Path

from app.visit_stats.factory import create_visit_stats_module
from app.visit_stats.user_agent import classify
from config_manager import get_paths_config, get_visit_stats_config

# Set up logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def default_visits_file() -> Path:
    paths_config = get_paths_config()
    return Path(__file__).parent / paths_config.database_dir / paths_config.visits_file


def main(argv=None):
    parser = argparse.ArgumentParser(description="Visit log management script")
    parser.add_argument("--visits-file", type=Path, default=None,
                        help="Visit log JSON file (defaults to the configured path)")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--stats", action="store_true",
                        help="Print the full statistics report")
    action.add_argument("--count", action="store_true",
                        help="Compare the stored counter with the actual record count")
    action.add_argument("--classify", metavar="USER_AGENT",
                        help="Show how a raw User-Agent string is classified")

    args = parser.parse_args(argv)

    if args.classify is not None:
        print(json.dumps(classify(args.classify).to_dict(), indent=2, ensure_ascii=False))
        return 0

    visits_file = args.visits_file or default_visits_file()
    service = create_visit_stats_module(visits_file, get_visit_stats_config())["service"]

    if args.stats:
        report = service.process_all_stats()
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return 0

    check = service.get_count_check()
    if check["storedTotal"] != check["actualTotal"]:
        logger.warning(
            f"Stored counter ({check['storedTotal']}) differs from record count ({check['actualTotal']})"
        )
    print(json.dumps(check, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
