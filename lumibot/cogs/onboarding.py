from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import discord
from discord.ext import commands

from ..utils import find_role, find_text_channel

if TYPE_CHECKING:
    from ..bot import BotCoordinator

logger = logging.getLogger(__name__)

MEMBER_ROLE = "🌱 Member"

START_ONBOARDING_ID = "start_onboarding"
ACCEPT_RULES_ID = "accept_rules"

SUCCESS_COLOUR = discord.Colour(0x2ECC71)
STEP_COLOUR = discord.Colour(0x3498DB)
RULES_COLOUR = discord.Colour(0xE74C3C)
FALLBACK_COLOUR = discord.Colour(0xFFA500)

COMMUNITY_RULES = (
    ("Be Respectful", "No harassment or hate speech"),
    ("No Spam", "Keep it clean"),
    ("Stay On Topic", "Use the right channels"),
    ("No Cheating", "Earn your score honestly"),
    ("Protect Privacy", "Keep personal info safe"),
    ("No NSFW", "This is an educational server"),
    ("Follow Discord ToS", "Standard rules apply"),
    ("Listen to Staff", "Mods have final say"),
)


@dataclass(frozen=True)
class OnboardingOption:
    value: str
    label: str
    role: str
    emoji: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class OnboardingStep:
    field: str
    custom_id: str
    title: str
    description: str
    placeholder: str
    options: tuple[OnboardingOption, ...]

    def role_for(self, value: Optional[str]) -> Optional[str]:
        for option in self.options:
            if option.value == value:
                return option.role
        return None


STEPS = (
    OnboardingStep(
        field="nationality",
        custom_id="select_nationality",
        title="Step 1 of 3: Where are you from?",
        description="Select your nationality from the dropdown below.",
        placeholder="Select your nationality",
        options=(
            OnboardingOption("vietnam", "Vietnam", "🇻🇳 Vietnam", emoji="🇻🇳"),
            OnboardingOption("usa", "United States", "🇺🇸 United States", emoji="🇺🇸"),
            OnboardingOption("uk", "United Kingdom", "🇬🇧 United Kingdom", emoji="🇬🇧"),
            OnboardingOption("singapore", "Singapore", "🇸🇬 Singapore", emoji="🇸🇬"),
            OnboardingOption("korea", "South Korea", "🇰🇷 South Korea", emoji="🇰🇷"),
            OnboardingOption("japan", "Japan", "🇯🇵 Japan", emoji="🇯🇵"),
            OnboardingOption("china", "China", "🇨🇳 China", emoji="🇨🇳"),
            OnboardingOption("india", "India", "🇮🇳 India", emoji="🇮🇳"),
            OnboardingOption("other", "Other International", "🌏 Other International", emoji="🌏"),
        ),
    ),
    OnboardingStep(
        field="score",
        custom_id="select_score",
        title="Step 2 of 3: What's your current SAT score range?",
        description=(
            "Select your current or most recent practice test score range.\n\n"
            "*Don't worry, this is just to connect you with peers at a similar level!*"
        ),
        placeholder="Select your score range",
        options=(
            OnboardingOption("below_1000", "Below 1000", "📊 Below 1000", description="Just getting started"),
            OnboardingOption("1000_1200", "1000 - 1200", "📊 1000-1200", description="Building foundations"),
            OnboardingOption("1200_1400", "1200 - 1400", "📊 1200-1400", description="Making progress"),
            OnboardingOption("1400_1500", "1400 - 1500", "📊 1400-1500", description="Strong scorer"),
            OnboardingOption("1500_plus", "1500+", "📊 1500+", description="Top performer"),
        ),
    ),
    OnboardingStep(
        field="grade",
        custom_id="select_grade",
        title="Step 3 of 3: What grade are you in?",
        description="Select your current grade level.",
        placeholder="Select your grade",
        options=(
            OnboardingOption("freshman", "Freshman (Grade 9)", "🎒 Freshman"),
            OnboardingOption("sophomore", "Sophomore (Grade 10)", "🎒 Sophomore"),
            OnboardingOption("junior", "Junior (Grade 11)", "🎒 Junior"),
            OnboardingOption("senior", "Senior (Grade 12)", "🎒 Senior"),
            OnboardingOption("gap_year", "Gap Year / Other", "🎒 Gap Year"),
        ),
    ),
)


@dataclass
class OnboardingState:
    """Answers collected so far for one member."""

    guild_id: Optional[int]
    nationality: Optional[str] = None
    score: Optional[str] = None
    grade: Optional[str] = None

    def is_complete(self) -> bool:
        return all(getattr(self, step.field) is not None for step in STEPS)

    def role_names(self) -> list[str]:
        names = [MEMBER_ROLE]
        for step in STEPS:
            role = step.role_for(getattr(self, step.field))
            if role:
                names.append(role)
        return names


def welcome_embed() -> discord.Embed:
    embed = discord.Embed(
        title="🌸 Welcome to Lumist.ai!",
        description=(
            "Hey there! Welcome to the **Lumist.ai** community!\n\n"
            "We're so excited to have you here. Before you can access the full server, "
            "we need you to complete a quick onboarding process.\n\n"
            "**What you'll need to do:**\n"
            "1️⃣ Select your nationality\n"
            "2️⃣ Tell us your current SAT score range\n"
            "3️⃣ Select your grade level\n"
            "4️⃣ Accept our community rules\n\n"
            "This only takes about 30 seconds!\n\n"
            "Click the button below to get started 👇"
        ),
        colour=SUCCESS_COLOUR,
    )
    embed.set_footer(text="Lumist.ai • AI-Powered SAT Prep")
    return embed


def step_embed(step: OnboardingStep) -> discord.Embed:
    return discord.Embed(title=step.title, description=step.description, colour=STEP_COLOUR)


def rules_embed() -> discord.Embed:
    rules = "\n".join(f"**{i}. {title}** - {detail}" for i, (title, detail) in enumerate(COMMUNITY_RULES, 1))
    return discord.Embed(
        title="📜 Almost done! Accept the rules",
        description=(
            "Please read and accept our community rules:\n\n"
            f"{rules}\n\n"
            'By clicking "I Accept", you agree to follow these rules.'
        ),
        colour=RULES_COLOUR,
    )


def completion_embed(introductions_channel: str) -> discord.Embed:
    return discord.Embed(
        title="🎉 Onboarding Complete!",
        description=(
            "Welcome to the **Lumist.ai** community!\n\n"
            "You now have access to all community channels. Here's what to do next:\n\n"
            f"📝 **Introduce yourself** in #{introductions_channel}\n"
            "📚 **Check out** the study channels\n"
            "💬 **Say hi** in #general\n\n"
            "See you around! 🚀"
        ),
        colour=SUCCESS_COLOUR,
    )


class StartOnboardingView(discord.ui.View):
    def __init__(self, cog: "OnboardingCog") -> None:
        super().__init__(timeout=None)
        self.cog = cog

    @discord.ui.button(label="🚀 Start Onboarding", style=discord.ButtonStyle.primary, custom_id=START_ONBOARDING_ID)
    async def start_onboarding(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.handle_start(interaction)


class StepSelect(discord.ui.Select):
    def __init__(self, cog: "OnboardingCog", step: OnboardingStep) -> None:
        super().__init__(
            custom_id=step.custom_id,
            placeholder=step.placeholder,
            options=[
                discord.SelectOption(
                    label=option.label,
                    value=option.value,
                    emoji=option.emoji,
                    description=option.description,
                )
                for option in step.options
            ],
        )
        self.cog = cog
        self.step = step

    async def callback(self, interaction: discord.Interaction) -> None:
        await self.cog.handle_selection(interaction, self.step, self.values[0])


class StepView(discord.ui.View):
    def __init__(self, cog: "OnboardingCog", step: OnboardingStep) -> None:
        super().__init__(timeout=None)
        self.add_item(StepSelect(cog, step))


class AcceptRulesView(discord.ui.View):
    def __init__(self, cog: "OnboardingCog") -> None:
        super().__init__(timeout=None)
        self.cog = cog

    @discord.ui.button(label="✅ I Accept the Rules", style=discord.ButtonStyle.success, custom_id=ACCEPT_RULES_ID)
    async def accept_rules(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.handle_accept(interaction)


def persistent_views(cog: "OnboardingCog") -> list[discord.ui.View]:
    """Views that must keep answering clicks after a restart."""
    return [StartOnboardingView(cog), *(StepView(cog, step) for step in STEPS), AcceptRulesView(cog)]


class OnboardingCog(commands.Cog):
    """Walks new members through the nationality, score, grade and rules steps."""

    def __init__(self, bot: commands.Bot, coordinator: "BotCoordinator"):
        self.bot = bot
        self.coordinator = coordinator
        self.states: dict[int, OnboardingState] = {}

    def _default_guild_id(self) -> Optional[int]:
        return self.coordinator.settings.guild_id

    async def start(self, member: discord.Member) -> None:
        """DM the welcome message, or post it in the welcome channel if DMs are closed."""
        self.states[member.id] = OnboardingState(guild_id=member.guild.id)
        try:
            await member.send(embed=welcome_embed(), view=StartOnboardingView(self))
        except discord.HTTPException:
            logger.info("Could not DM %s (DMs might be disabled)", member)
        else:
            logger.info("Sent welcome DM to %s", member)
            return

        channel = find_text_channel(member.guild, self.coordinator.settings.welcome_channel)
        if channel is None:
            logger.warning("No #%s channel to fall back to for %s", self.coordinator.settings.welcome_channel, member)
            return
        embed = discord.Embed(
            description=(
                f"Hey {member.mention}! I couldn't send you a DM. Please enable DMs from server members, "
                "or click the button below to start onboarding."
            ),
            colour=FALLBACK_COLOUR,
        )
        try:
            await channel.send(embed=embed, view=StartOnboardingView(self))
        except discord.HTTPException as e:
            logger.warning("Failed to post onboarding fallback for %s: %s", member, e)

    async def handle_start(self, interaction: discord.Interaction) -> None:
        user = interaction.user
        logger.info("%s started onboarding", user)
        guild_id = interaction.guild.id if interaction.guild else self._default_guild_id()
        self.states.setdefault(user.id, OnboardingState(guild_id=guild_id))

        first = STEPS[0]
        if interaction.guild is not None:
            # Clicked from the shared welcome channel; keep the flow private.
            await interaction.response.send_message(embed=step_embed(first), view=StepView(self, first), ephemeral=True)
        else:
            await interaction.response.edit_message(embed=step_embed(first), view=StepView(self, first))

    async def handle_selection(self, interaction: discord.Interaction, step: OnboardingStep, value: str) -> None:
        state = self.states.setdefault(interaction.user.id, OnboardingState(guild_id=self._default_guild_id()))
        setattr(state, step.field, value)
        logger.info("%s selected %s: %s", interaction.user, step.field, value)

        index = STEPS.index(step)
        if index + 1 < len(STEPS):
            following = STEPS[index + 1]
            await interaction.response.edit_message(embed=step_embed(following), view=StepView(self, following))
        else:
            await interaction.response.edit_message(embed=rules_embed(), view=AcceptRulesView(self))

    async def _resolve_member(self, state: OnboardingState, user_id: int) -> Optional[discord.Member]:
        guild_id = state.guild_id or self._default_guild_id()
        guild = self.bot.get_guild(guild_id) if guild_id is not None else None
        if guild is None:
            return None
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException:
            return None

    async def handle_accept(self, interaction: discord.Interaction) -> None:
        user = interaction.user
        state = self.states.get(user.id)
        if state is None or not state.is_complete():
            await interaction.response.send_message(
                "❌ Something went wrong. Please try again from the beginning.",
                ephemeral=True,
            )
            return

        logger.info("%s accepted rules, assigning roles", user)
        member = await self._resolve_member(state, user.id)
        if member is None:
            logger.error("Could not find %s in guild %s to finish onboarding", user, state.guild_id)
            await interaction.response.send_message(
                "❌ There was an error completing your onboarding. Please contact a moderator.",
                ephemeral=True,
            )
            return

        roles = []
        for name in state.role_names():
            role = find_role(member.guild, name)
            if role is None:
                logger.warning("Role not found: %s", name)
                continue
            roles.append(role)

        try:
            if roles:
                await member.add_roles(*roles, reason="Completed onboarding")
        except discord.HTTPException:
            logger.exception("Error assigning onboarding roles to %s", member)
            await interaction.response.send_message(
                "❌ There was an error completing your onboarding. Please contact a moderator.",
                ephemeral=True,
            )
            return

        settings = self.coordinator.settings
        await interaction.response.edit_message(embed=completion_embed(settings.introductions_channel), view=None)
        del self.states[user.id]

        channel = find_text_channel(member.guild, settings.introductions_channel)
        if channel is not None:
            embed = discord.Embed(
                description=f"🎉 Welcome {member.mention} to **Lumist.ai**! Say hi and tell us about yourself!",
                colour=SUCCESS_COLOUR,
                timestamp=discord.utils.utcnow(),
            )
            try:
                await channel.send(embed=embed)
            except discord.HTTPException as e:
                logger.warning("Failed to post introduction for %s: %s", member, e)

        logger.info("%s completed onboarding", member)
        await self.coordinator.event_sink.record(
            "onboarding_complete",
            user_id=str(member.id),
            nationality=state.nationality,
            score=state.score,
            grade=state.grade,
        )
