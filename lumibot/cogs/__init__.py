"""Discord cogs bundled with the Lumist bot."""

from .moderation import ModerationCog
from .onboarding import OnboardingCog

__all__ = [
    "ModerationCog",
    "OnboardingCog",
]
