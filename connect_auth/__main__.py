"""
Two-context walkthrough of the session layer.

Opens two contexts on one origin, signs in from the first, and shows the
second picking the user up through the storage channel. Then reloads the
first context and signs out.

Usage:
    ENVIRONMENT=development python -m connect_auth
"""

import asyncio
import logging
import sys

from connect_auth.config import AuthSettings
from connect_auth.session import AuthContext
from connect_auth.storage import BroadcastHub, FileStorage, MemoryStorage
from connect_auth.utils import AuthException, configure_logging

logger = logging.getLogger(__name__)


async def main() -> int:
    settings = AuthSettings()
    configure_logging(settings.LOG_LEVEL)

    storage_path = settings.local_storage_path()
    local_storage = FileStorage(storage_path) if storage_path else MemoryStorage()
    hub = BroadcastHub()
    tab_a_session = MemoryStorage()

    tab_a = AuthContext.from_settings(settings, local_storage, tab_a_session, channel=hub.connect("tab-a"))
    tab_b = AuthContext.from_settings(settings, local_storage, MemoryStorage(), channel=hub.connect("tab-b"))
    contexts = [tab_a, tab_b]

    try:
        await tab_a.start()
        await tab_b.start()

        user = await tab_a.sign_in("demo@example.com", "secret1")
        await tab_b.engine.settle()
        print(f"tab-a signed in as {user.email}")
        print(f"tab-b sees {tab_b.user.email if tab_b.user else None}")

        # Reload: same session storage, fresh provider and engine
        await tab_a.close()
        reloaded = AuthContext.from_settings(
            settings, local_storage, tab_a_session, channel=hub.connect("tab-a-reloaded")
        )
        contexts.append(reloaded)
        await reloaded.start()
        print(f"reloaded tab-a sees {reloaded.user.email if reloaded.user else None} ({reloaded.status.value})")

        await reloaded.sign_out()
        await tab_b.engine.settle()
        print(f"after sign-out tab-b sees {tab_b.user}")
    except AuthException as e:
        logger.error(f"Walkthrough failed: {e.code}: {e.message}")
        return 1
    finally:
        for context in contexts:
            await context.close()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
