"""Lumist.ai community bot: onboarding, auto-moderation and raid protection."""
