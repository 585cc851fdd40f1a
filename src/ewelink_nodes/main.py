import argparse
import asyncio
import json
import logging
import sys

from ewelink_nodes.config import Settings
from ewelink_nodes.exceptions import EwelinkException
from ewelink_nodes.runtime import FlowRuntime, load_flow_file

logger = logging.getLogger(__name__)

CLI_CAPTURE_ID = "_cli_capture"


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(settings.log_level, logging.WARNING))


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ewelink-nodes",
        description="Load a flow, send one message into a node and print what it emits.",
    )
    parser.add_argument("flow_file", help="YAML or JSON flow definition")
    parser.add_argument("--node", required=True, help="id of the node to send the message to")
    parser.add_argument(
        "--payload",
        default="",
        help="message payload; used as the device id when the node has none configured",
    )
    return parser.parse_args(argv)


async def main(args: argparse.Namespace, settings: Settings) -> int:
    definitions = load_flow_file(args.flow_file)

    # listen on the target node's output
    definitions.append({"id": CLI_CAPTURE_ID, "type": "capture"})
    for definition in definitions:
        if definition.get("id") == args.node:
            wires = definition.setdefault("wires", [])
            if not wires:
                wires.append([])
            wires[0].append(CLI_CAPTURE_ID)

    async with FlowRuntime(settings) as runtime:
        await runtime.load(definitions)
        runtime.inject(args.node, {"payload": args.payload})
        await runtime.drain()

        for msg in runtime.nodes[CLI_CAPTURE_ID].messages:
            print(json.dumps(msg, default=str))

        for error in runtime.errors:
            logger.error(f"{error.node_id}: {error.text}")

        return 1 if runtime.errors else 0


def run():
    """entrypoint"""
    args = parse_args()
    settings = Settings()
    configure_logging(settings)

    try:
        exit_code = asyncio.run(main(args, settings))
    except EwelinkException as e:
        logger.error(str(e))
        exit_code = 2
    except KeyboardInterrupt:
        logger.info("Received KeyboardInterrupt. Shutting down.")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
