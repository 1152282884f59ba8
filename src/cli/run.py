import asyncio
import logging
import os
import time
from datetime import timedelta

from core.entities import utcnow
from delivery.log_delivery import LoggingSink
from services.config import load_config
from services.game_state import InMemoryGameState
from services.logging import setup_logging
from workflows.pipeline_factory import build_orchestrator


async def main(turns: int = 10) -> None:
    start_time = time.perf_counter()
    config = load_config()
    setup_logging(debug=config.debug_logging)
    logger = logging.getLogger(__name__)

    logger.info(f"Starting news cycle simulation for {turns} turns")

    # ----------------------------
    # Initialize shared services
    # ----------------------------
    state = InMemoryGameState()
    orchestrator = build_orchestrator(config, state, sinks=[LoggingSink()])
    loaded = orchestrator.load_cache()
    logger.info(f"Cache warm start: {loaded} items")

    # ----------------------------
    # Run turns
    # ----------------------------
    now = utcnow()
    for _ in range(turns):
        try:
            await orchestrator.update(now)

            event = orchestrator.dequeue_next_event()
            if event is not None and event.response_options:
                result = orchestrator.process_player_response(event.id, event.response_options[0].option_id)
                logger.info(f"Turn {state.turn}: {result.message or result.status.value}")

            state.advance_turn()
            orchestrator.on_turn_advance()
        except Exception as e:
            logger.exception(f"Turn {state.turn} failed: {e}")

        now += timedelta(seconds=config.fetch_interval_seconds)

    status = orchestrator.status()
    logger.info(
        f"Simulation finished: active={status.active_events}, archived={status.archived_events}, "
        f"source={status.source.primary.value}, consistency={status.consistency_score:.0f}, "
        f"resources={state.resources}"
    )

    orchestrator.save_cache()

    end_time = time.perf_counter()
    logger.info(f"Total time: {end_time - start_time}")


def cli() -> None:
    asyncio.run(main(int(os.getenv("NEWSCYCLE_TURNS", "10"))))


if __name__ == "__main__":
    cli()
