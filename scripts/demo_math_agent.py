#!/usr/bin/env python3
"""
Math Agent Demo

Walks through both transports against a running gateway:
1. Creates an agent over HTTP
2. Lists the tool catalog
3. Runs a few operations over POST /mcp
4. Opens a leg, pings, and runs operations over the WebSocket
5. Shows how operation failures are reported on each transport

Usage:
    python -m mathmcp            # in another terminal
    python scripts/demo_math_agent.py [--url http://localhost:8000] [--name demo]
"""

import argparse
import asyncio
import logging

from mathmcp.client import MathAgentClient, MathAgentError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_demo(url: str, name: str) -> None:
    async with MathAgentClient(url, ping_interval=None) as client:
        logger.info("=" * 60)
        logger.info("HTTP transport")
        logger.info("=" * 60)

        status = await client.status()
        logger.info(f"Gateway status: {status['status']}")

        agent_id = await client.create_agent(name)
        logger.info(f"Agent: {agent_id}")

        tools = await client.discover()
        logger.info(f"Tools: {', '.join(tool['name'] for tool in tools)}")

        for method, params in [
            ("add", {"a": 5, "b": 3}),
            ("power", {"base": 2, "exponent": 10}),
            ("log", {"value": 100, "base": 10}),
        ]:
            result = await client.call(method, params)
            logger.info(f"{method}({params}) = {result['result']}")

        try:
            await client.call("divide", {"a": 1, "b": 0})
        except MathAgentError as e:
            logger.info(f"divide by zero rejected: {e.message} ({e.code})")

        logger.info("=" * 60)
        logger.info("WebSocket leg")
        logger.info("=" * 60)

        connected = await client.connect()
        logger.info(f"Leg open: {connected['sessionId']}")

        pong = await client.ping()
        logger.info(f"Pong at {pong['timestamp']}")

        for method, params in [
            ("multiply", {"a": 6, "b": 7}),
            ("sqrt", {"value": 16}),
            ("sin", {"angle": 0}),
        ]:
            result = await client.send_request(method, params)
            logger.info(f"{method}({params}) = {result['result']}")

        try:
            await client.send_request("sqrt", {"value": -1})
        except MathAgentError as e:
            logger.info(f"sqrt(-1) rejected: {e.message}")

        logger.info("Demo complete")


def main() -> None:
    parser = argparse.ArgumentParser(description="Math MCP gateway demo client")
    parser.add_argument("--url", default="http://localhost:8000", help="Gateway base URL")
    parser.add_argument("--name", default="demo-agent", help="Agent name")
    args = parser.parse_args()

    try:
        asyncio.run(run_demo(args.url, args.name))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
