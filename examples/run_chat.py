import sys
import os
import asyncio
from loguru import logger

# --- Start of Path Modification (src layout) ---
# Lets the example run from a checkout without installing the package.
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
src_path = os.path.join(project_root, 'src')
sys.path.insert(0, src_path)
# --- End of Path Modification ---

from llamaConsole.utils.logging import setup_logging
from llamaConsole.core.engine import LlamaCppEngine
from llamaConsole.core.session import ModelSession
from llamaConsole.console import ChatConsole, resolve_model_path
from llamaConsole.errors import ChatError

MODEL_PATH = "./models/Qwen3-4B-Instruct-2507-Q4_K_M.gguf"


async def main():
    """
    Composition root: wires an engine, a session and the console by hand,
    with a full GPU offload and a larger context than the CLI defaults.
    """
    setup_logging(level="INFO")

    session = ModelSession(engine_factory=lambda: LlamaCppEngine(verbose=False))
    try:
        # NOTE: The model path is relative to where you RUN the script.
        session.initialize(resolve_model_path(MODEL_PATH), context_size=4096, gpu_layers=99)  # 99 covers every layer of a 4B model
        session.setup_session([
            ("system", "You are a helpful, brief, and conversational AI assistant."),
        ])
        await ChatConsole(session).run()
    except ChatError as e:
        logger.critical(f"Chat cannot start: {e}")
    finally:
        logger.info("Shutting down chat...")
        session.dispose()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
