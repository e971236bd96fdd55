# scripts/sweep_once.py
import sys
from pathlib import Path

# Ensure project root is on the path when running this script directly
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio

from blindstore.api.dependencies import build_components
from blindstore.config.logging import configure_logging
from blindstore.config.settings import get_settings


async def sweep_once():
    settings = get_settings()
    configure_logging(settings.log_level)
    components = build_components(settings)
    try:
        if components.engine is not None and settings.create_tables:
            from blindstore.infrastructure.database.session import init_models

            await init_models(components.engine)
        purged = await components.sweeper.run_once()
        print("Notes purged:", purged)
    finally:
        await components.shutdown()

asyncio.run(sweep_once())
