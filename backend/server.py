#!/usr/bin/env python3
"""Run a simulation of the app project in the current (or configured) directory."""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from simhost.simulator import Simulator
from simhost.utils import get_logger, setup_logger
from simhost.utils.config import load_config


async def main(config_path: str = None) -> int:
    settings = load_config(config_path)
    setup_logger(
        level=settings.logging.level,
        log_format=settings.logging.format,
        log_file=settings.logging.file,
    )
    logger = get_logger("main")

    simulator = Simulator(settings.simulator)
    if not await simulator.start_simulation():
        return 1

    logger.info(f"App: {simulator.app_url()}")
    logger.info(f"Simulation host: {simulator.sim_host_url()}")

    try:
        await simulator.server.wait_closed()
    finally:
        if simulator.is_active():
            await simulator.stop_simulation()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None)))
    except KeyboardInterrupt:
        pass
