import httpx
from typing import Callable, Dict, Optional
from ..config import settings

def unauthorized_hook(on_unauthorized: Callable[[], None]):
    async def check(response: httpx.Response):
        if response.status_code == 401:
            on_unauthorized()
    return check

def build_http_client(on_unauthorized: Optional[Callable[[], None]] = None,
                      transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    One AsyncClient shared by every backend client.
    on_unauthorized runs on any 401, before the caller sees the error.
    """
    headers: Dict[str, str] = {"Accept": "application/json"}
    if settings.API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.API_TOKEN}"
    hooks = {"response": [unauthorized_hook(on_unauthorized)]} if on_unauthorized else {}
    return httpx.AsyncClient(
        base_url=settings.API_BASE_URL.rstrip('/'),
        headers=headers,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
        event_hooks=hooks,
        transport=transport
    )

def clean_id(value) -> str:
    return str(value if value is not None else "").strip()
