"""Entry point for `python -m llamaConsole`."""

import asyncio
import sys

from loguru import logger

from .config import defaults
from .console import ChatConsole, resolve_model_path
from .core.session import ModelSession
from .errors import ChatError
from .utils.logging import setup_logging


async def run_chat(session: ModelSession, input_fn=input, output=sys.stdout) -> None:
    model_path = resolve_model_path(defaults.model_path, input_fn, output)
    session.initialize(model_path, defaults.context_size, defaults.gpu_layers)
    console = ChatConsole(session, input_fn, output)
    console.start()
    await console.run()


def main(session_factory=ModelSession, input_fn=input, output=sys.stdout, log_dir="logs") -> int:
    setup_logging(level="WARNING", log_dir=log_dir)
    session = session_factory()
    try:
        asyncio.run(run_chat(session, input_fn, output))
    except ChatError as e:
        logger.error(f"Startup failed: {e}")
        output.write(f"Error: {e}\n")
        output.flush()
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 130
    finally:
        session.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
