"""Run the CDC pipeline programmatically with a SQLite checkpoint."""

import asyncio
import signal

from fluxcdc import EngineClient, Pipeline, get_checkpoint_store
from fluxcdc.config import load_config


async def main():
    config = load_config()
    checkpoints = get_checkpoint_store("sqlite://fluxcdc-checkpoints.db", config=config)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, stop_event.set)

    async with EngineClient.from_config(config.engine) as engine:
        pipeline = Pipeline.from_config(config, engine=engine, checkpoints=checkpoints)
        await pipeline.run(stop_event)

    print(f"Stopped at watermark {pipeline.watermark.started_after}")


if __name__ == "__main__":
    asyncio.run(main())
