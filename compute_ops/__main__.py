import asyncio
import logging
import os
import sys

from compute_ops.arguments import Parser
from compute_ops.server import amain


def main() -> None:
    parser = Parser(
        config_files=[os.getenv("COMPUTE_OPS_CONFIG", "~/.config/compute-ops/config.ini")],
        auto_env_var_prefix="COMPUTE_OPS_",
    )
    parser.parse_args()

    logging.basicConfig(level=parser.log_level, format="[%(levelname)s] %(message)s", stream=sys.stderr)
    try:
        asyncio.run(amain(parser))
    except KeyboardInterrupt:
        logging.info("Gracefully exited on keyboard interrupt")


if __name__ == "__main__":
    main()
