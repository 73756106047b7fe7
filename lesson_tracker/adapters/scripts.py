import asyncio
import logging
import httpx
from typing import Awaitable, Callable, Dict, Optional
from ..config import settings

logger = logging.getLogger(__name__)

ReadyCheck = Callable[[], bool]

async def fetch_script(url: str):
    """Pulls the SDK script. Stands in for injecting a <script> tag."""
    async with httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT_SECONDS, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()

class ScriptLoader:
    """
    Loads each third-party player SDK at most once per process.

    Every caller asking for the same URL gets the same future, so switching
    lessons never injects a script twice. Failed loads are evicted so the
    next lesson may try again.

    The fetch only checks that the SDK is reachable; nothing here evaluates
    it. The host that embeds the player runs the script and owns the SDK
    global (`YT`, `Vimeo`). When a load names a ready callback, the host must
    forward that callback with notify_ready(), otherwise the load times out
    after SCRIPT_READY_TIMEOUT_SECONDS. Without a callback the loader polls
    ready_check until the host exposes the global.
    """

    def __init__(self, fetch: Optional[Callable[[str], Awaitable[None]]] = None):
        self._fetch = fetch or fetch_script
        self._loads: Dict[str, asyncio.Future] = {}
        self._ready_waiters: Dict[str, asyncio.Future] = {}

    def is_loading(self, url: str) -> bool:
        return url in self._loads

    def load_once(self, url: str, ready_check: ReadyCheck, ready_callback: Optional[str] = None) -> asyncio.Future:
        load = self._loads.get(url)
        if load is not None:
            return load

        if ready_check():
            load = asyncio.get_running_loop().create_future()
            load.set_result(None)
        else:
            load = asyncio.ensure_future(self._load(url, ready_check, ready_callback))
            load.add_done_callback(lambda f: self._evict_failed(url, f))

        self._loads[url] = load
        return load

    def notify_ready(self, callback_name: str):
        """Called by the host when an SDK fires its global readiness callback."""
        waiter = self._ready_waiters.pop(callback_name, None)
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

    def reset(self):
        self._loads.clear()
        self._ready_waiters.clear()

    async def _load(self, url: str, ready_check: ReadyCheck, ready_callback: Optional[str]):
        waiter = None
        if ready_callback:
            # Registered before the fetch, the SDK may signal as soon as it is evaluated
            waiter = asyncio.get_running_loop().create_future()
            self._ready_waiters[ready_callback] = waiter

        logger.info(f"Loading player SDK {url}")
        try:
            await self._fetch(url)
            if waiter is not None:
                await asyncio.wait_for(waiter, timeout=settings.SCRIPT_READY_TIMEOUT_SECONDS)
            else:
                await self._poll_ready(ready_check)
        finally:
            if ready_callback and self._ready_waiters.get(ready_callback) is waiter:
                self._ready_waiters.pop(ready_callback, None)

    async def _poll_ready(self, ready_check: ReadyCheck):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + settings.SCRIPT_READY_TIMEOUT_SECONDS
        while not ready_check():
            if loop.time() >= deadline:
                raise TimeoutError("Player SDK never became available")
            await asyncio.sleep(settings.SCRIPT_READY_POLL_INTERVAL_SECONDS)

    def _evict_failed(self, url: str, load: asyncio.Future):
        if load.cancelled() or load.exception() is not None:
            if self._loads.get(url) is load:
                del self._loads[url]
            if not load.cancelled():
                logger.warning(f"Failed to load script {url}: {load.exception()!r}")

script_loader = ScriptLoader()
