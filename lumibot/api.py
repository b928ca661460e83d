from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import Settings

if TYPE_CHECKING:
    from .bot import BotCoordinator


def create_app(coordinator: "BotCoordinator", settings: Settings) -> FastAPI:
    app = FastAPI(
        title="Lumist Bot",
        version="1.0.0",
        description="Health and moderation status for the Lumist.ai Discord bot",
        docs_url="/docs",
        redoc_url=None,
    )

    # slowapi keys route limits by function name, so each app needs its own limiter.
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    def _health() -> dict:
        health = coordinator.get_health_stats()
        return {
            "status": health["status"],
            "bot": health["bot"],
            "uptime": health["uptime"],
            "timestamp": health["timestamp"],
        }

    @app.get("/")
    async def root():
        return _health()

    @app.get("/health")
    async def health():
        return _health()

    @app.get("/api/moderation/stats")
    @limiter.limit("60/minute")
    async def moderation_stats(request: Request):
        """Violation and action counters plus raid state."""
        stats = coordinator.automod.stats()
        health = coordinator.get_health_stats()
        return {
            **stats,
            "active_checks": coordinator.active_checks(),
            "guild_id": settings.guild_id,
            "discord_ready": health["discord_ready"],
            "uptime_formatted": health["uptime_formatted"],
            "error_count": health["error_count"],
        }

    return app
