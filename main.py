"""jsonlog demo: check that events can be filed, then log one."""

import json
import logging
import sys
from argparse import ArgumentParser

from jsonlog import Config, JsonLog

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [jsonlog] %(levelname)s %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="jsonlog-demo",
        description="Check/enable the JSON log file, then write a sample event.",
    )
    parser.add_argument(
        "--config",
        help="YAML config file (default: $JSONLOG_CONFIG or built-in defaults)",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    json_log = JsonLog(Config(args.config))

    response = json_log.committable(enable=True, verbose=True)
    print(json.dumps(response, indent=2))
    if not response["success"]:
        return 1

    json_log.log(4, "Does it {work}? Code is {code}.", {"work": "actually work", "code": 117})
    logger.info("Logged to %s", json_log.sink.resolve_file())
    return 0


if __name__ == "__main__":
    sys.exit(main())
