import asyncio
import random
import time
import traceback
from datetime import datetime, timedelta
from typing import List, Optional

import discord
from redbot.core import Config, commands, data_manager

from .decorators import is_cog_ready, is_not_locked
from .helpers import (
    TimeHelper,
    LockHelper,
    LoggingHelper,
    DataHelper,
    CatalogHelper,
    GameStateHelper,
    EconomyHelper,
    GridHelper,
    RewardHelper,
    SessionHelper,
    GRID_SIZE,
)
from .models import (
    GRASS,
    HUNGER,
    PLANT_TIERS,
    CatalogItem,
    CompletionResult,
    CookieAward,
    GrassAward,
    ItemRef,
    OperationResult,
)


class Funger(commands.Cog):
    """Funger - log hunger episodes for cookies, touch grass for daisies, and grow a garden."""

    CURRENCY_EMOJI = "🌼"
    COOKIE_EMOJI = "🍪"

    def __init__(self, bot: commands.Bot):
        self._initialized = False

        self.bot = bot
        self.config = Config.get_conf(self, identifier=730214650183122944)
        self.config.register_global(game_state={})

        self.cog_data_path = data_manager.bundled_data_path(self)
        self.lock_helper = LockHelper()
        self.logger = LoggingHelper(bot, 0)
        self.data_loader = DataHelper(self.cog_data_path, self.logger)
        self.data_loader.load_all_data()

        self.catalog_helper = CatalogHelper(
            self.data_loader.plants,
            self.data_loader.ornaments,
            self.data_loader.ornament_weights,
            self.data_loader.cookies,
            self.data_loader.achievements,
        )
        self.game_state_helper = GameStateHelper(self.config, self.logger, self.lock_helper)

        self.economy_helper: Optional[EconomyHelper] = None
        self.grid_helper: Optional[GridHelper] = None
        self.reward_helper: Optional[RewardHelper] = None
        self.session_helper: Optional[SessionHelper] = None

        self.save_task = self.bot.loop.create_task(self.startup_and_save_loop())

    def cog_unload(self):
        """Cog cleanup method."""

        if self.save_task:
            self.save_task.cancel()

        if self._initialized:
            self.bot.loop.create_task(self.game_state_helper.commit_to_disk())

        self.lock_helper.clear_all_locks()
        self.logger.init_log("Funger cog systems are now offline.", "INFO")

    async def _load_and_initialize_helpers(self):
        await self.game_state_helper.load_game_state()

        log_channel_id = self.game_state_helper.get_global_state("log_channel_id", 0)
        if log_channel_id:
            self.logger.log_channel_id = log_channel_id
        self.logger.set_min_level(self.game_state_helper.get_global_state("log_level", "INFO"))

        self.economy_helper = EconomyHelper(self.game_state_helper, self.catalog_helper, self.logger)
        self.grid_helper = GridHelper(self.game_state_helper, self.economy_helper, self.catalog_helper, self.logger)
        self.reward_helper = RewardHelper(self.game_state_helper, self.economy_helper, self.catalog_helper,
                                          self.logger, random.Random())
        self.session_helper = SessionHelper(self.game_state_helper, self.reward_helper, self.logger)

    async def startup_and_save_loop(self):
        """The main background task: loads state once, then commits it to disk every minute."""

        await self.bot.wait_until_ready()
        await self.logger.flush_init_log_queue()

        await self._load_and_initialize_helpers()
        self._initialized = True

        await self.logger.log_to_discord("Save Loop: Startup complete.", "INFO")
        loop_counter = 0
        while not self.bot.is_closed():
            try:
                loop_start_time = time.monotonic()
                await self.game_state_helper.commit_to_disk()
                loop_duration = time.monotonic() - loop_start_time

                if loop_counter % 60 == 0:
                    await self.logger.log_to_discord(
                        f"Save Loop: Cycle {loop_counter} saved in {loop_duration:.2f}s.", "INFO")
            except Exception as e:
                await self.logger.log_to_discord(
                    f"Save Loop: CRITICAL Anomaly in cycle {loop_counter}: {e}\n{traceback.format_exc()}", "CRITICAL")

            loop_counter += 1
            now = datetime.now()
            next_minute_start = (now + timedelta(minutes=1)).replace(second=0, microsecond=0)
            wait_seconds = (next_minute_start - now).total_seconds()
            await asyncio.sleep(max(0.1, wait_seconds))

    # --- Formatting ---

    @staticmethod
    def _failure_embed(result: OperationResult, title: str) -> discord.Embed:
        embed = discord.Embed(title=f"❌ {title}", description=result.message or "That didn't work.",
                              color=discord.Color.red())
        embed.set_footer(text=f"Error: {result.error.value}" if result.error else "Funger")
        return embed

    def _resolve_item(self, name: str, tier: Optional[str]) -> Optional[CatalogItem]:
        name = name.lower()
        if self.catalog_helper.get_plant(name):
            tier = (tier or PLANT_TIERS[0]).lower()
            return self.catalog_helper.plant_item(name, tier) if tier in PLANT_TIERS else None
        return self.catalog_helper.ornament_item(name)

    def _describe_award(self, award) -> str:
        if isinstance(award, CookieAward):
            cookie = self.catalog_helper.get_cookie(award.cookie_type)
            emoji = cookie.emoji if cookie and cookie.emoji else self.COOKIE_EMOJI
            return (f"{emoji} You earned a **{award.cookie_type.replace('_', ' ')}** cookie!\n"
                    f"Streak: **{award.streak}** (best {award.longest_streak}) • "
                    f"Total cookies: **{award.total_cookies}**")

        if isinstance(award, GrassAward):
            desc = (f"+1 {self.CURRENCY_EMOJI} for touching grass. You now have "
                    f"**{award.currency_available}** {self.CURRENCY_EMOJI} "
                    f"({award.total_sessions_completed} sessions completed).")
            if award.bonus_ornament is not None:
                desc += (f"\n✨ Bonus: a **{self.catalog_helper.display_name(award.bonus_ornament)}** "
                         f"was added to your inventory!")
            return desc
        return ""

    async def _send_completion(self, ctx: commands.Context, completion: CompletionResult):
        session = completion.session
        title = "🍪 Hunger Episode Logged" if session.kind == HUNGER else "🌿 Touch Grass Complete"
        desc = f"Duration: **{TimeHelper.format_duration(session.duration_seconds)}**\n\n"
        desc += self._describe_award(completion.award)
        if completion.already_completed:
            desc += "\n\n*This session was already completed; no new reward was granted.*"

        embed = discord.Embed(title=title, description=desc, color=discord.Color.green())
        embed.set_footer(text=f"Funger - Reward Desk • {TimeHelper.get_est_date()}")
        embed.timestamp = TimeHelper.to_utc_datetime(session.end_time)
        await ctx.send(embed=embed)

    async def _recover(self, ctx: commands.Context):
        for completion in await self.session_helper.recover_overdue_sessions(ctx.author.id):
            await self._send_completion(ctx, completion)

    # --- Hunger ---

    @commands.group(name="hunger", invoke_without_command=True)
    @is_cog_ready()
    async def hunger_command(self, ctx: commands.Context):
        """Shows your current hunger episode."""

        session = await self.session_helper.get_active_session(ctx.author.id, HUNGER)
        if session is None:
            desc = f"No hunger episode in progress. Start one with `{ctx.prefix}hunger start`."
        else:
            desc = (f"Hungry since <t:{session.start_time}:R> "
                    f"({TimeHelper.format_duration(session.elapsed_seconds(TimeHelper.get_current_timestamp()))}).\n"
                    f"Finish it with `{ctx.prefix}hunger stop`.")
        embed = discord.Embed(title="🍽️ Hunger Tracker", description=desc, color=discord.Color.blue())
        await ctx.send(embed=embed)

    @hunger_command.command(name="start")
    @is_not_locked()
    async def hunger_start_command(self, ctx: commands.Context):
        """Starts logging a hunger episode."""

        result = await self.session_helper.start_session(ctx.author.id, HUNGER)
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Episode Already Running"))
            return

        embed = discord.Embed(title="🍽️ Hunger Episode Started",
                              description=f"Started <t:{result.value.start_time}:t>. "
                                          f"Use `{ctx.prefix}hunger stop` when it passes to earn a cookie.",
                              color=discord.Color.green())
        await ctx.send(embed=embed)

    @hunger_command.command(name="stop")
    @is_not_locked()
    async def hunger_stop_command(self, ctx: commands.Context):
        """Ends your hunger episode and awards a cookie."""

        session = await self.session_helper.get_active_session(ctx.author.id, HUNGER)
        if session is None:
            await ctx.send(embed=discord.Embed(title="❌ No Episode Running",
                                               description=f"Start one with `{ctx.prefix}hunger start`.",
                                               color=discord.Color.red()))
            return

        result = await self.session_helper.complete_session(ctx.author.id, session.id)
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Could Not Finish Episode"))
            return
        await self._send_completion(ctx, result.value)

    @hunger_command.command(name="cancel")
    @is_not_locked()
    async def hunger_cancel_command(self, ctx: commands.Context):
        """Discards your hunger episode without a reward."""
        await self._cancel_active(ctx, HUNGER)

    @hunger_command.command(name="history")
    async def hunger_history_command(self, ctx: commands.Context):
        """Lists your recent hunger episodes."""
        await self._send_history(ctx, HUNGER)

    # --- Touch Grass ---

    @commands.group(name="grass", invoke_without_command=True)
    @is_cog_ready()
    async def grass_command(self, ctx: commands.Context):
        """Shows your Touch Grass timer."""

        await self._recover(ctx)

        session = await self.session_helper.get_active_session(ctx.author.id, GRASS)
        if session is None:
            desc = f"No break in progress. Start one with `{ctx.prefix}grass start`."
        else:
            ends_at = session.start_time + session.planned_duration_seconds
            desc = f"Your break ends <t:{ends_at}:R>. Run `{ctx.prefix}grass done` once you're back."
        embed = discord.Embed(title="🌿 Touch Grass", description=desc, color=discord.Color.blue())
        await ctx.send(embed=embed)

    @grass_command.command(name="start")
    @is_not_locked()
    async def grass_start_command(self, ctx: commands.Context):
        """Starts a Touch Grass break."""

        await self._recover(ctx)

        result = await self.session_helper.start_session(ctx.author.id, GRASS)
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Break Already Running"))
            return

        session = result.value
        ends_at = session.start_time + session.planned_duration_seconds
        embed = discord.Embed(title="🌿 Go Touch Grass",
                              description=f"Step away from the screen. Your break ends <t:{ends_at}:R>; "
                                          f"come back and run `{ctx.prefix}grass done` to collect your daisy.",
                              color=discord.Color.green())
        await ctx.send(embed=embed)

    @grass_command.command(name="done")
    @is_not_locked()
    async def grass_done_command(self, ctx: commands.Context):
        """Collects the reward for a finished break."""

        session = await self.session_helper.get_active_session(ctx.author.id, GRASS)
        if session is None:
            await ctx.send(embed=discord.Embed(title="❌ No Break Running",
                                               description=f"Start one with `{ctx.prefix}grass start`.",
                                               color=discord.Color.red()))
            return

        now = TimeHelper.get_current_timestamp()
        if not session.is_overdue(now):
            remaining = session.planned_duration_seconds - session.elapsed_seconds(now)
            await ctx.send(embed=discord.Embed(
                title="⏳ Not Yet",
                description=f"Your break still has **{TimeHelper.format_duration(remaining)}** to go.",
                color=discord.Color.orange()))
            return

        result = await self.session_helper.complete_session(ctx.author.id, session.id)
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Could Not Finish Break"))
            return
        await self._send_completion(ctx, result.value)

    @grass_command.command(name="cancel")
    @is_not_locked()
    async def grass_cancel_command(self, ctx: commands.Context):
        """Abandons your break. No daisy is awarded."""
        await self._cancel_active(ctx, GRASS)

    @grass_command.command(name="history")
    async def grass_history_command(self, ctx: commands.Context):
        """Lists your recent breaks."""
        await self._send_history(ctx, GRASS)

    async def _cancel_active(self, ctx: commands.Context, kind: str):
        session = await self.session_helper.get_active_session(ctx.author.id, kind)
        if session is None:
            await ctx.send(embed=discord.Embed(title="❌ Nothing To Cancel",
                                               description=f"You have no {kind} session running.",
                                               color=discord.Color.red()))
            return

        result = await self.session_helper.cancel_session(ctx.author.id, session.id)
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Could Not Cancel"))
            return
        await ctx.send(embed=discord.Embed(title="🗑️ Session Cancelled",
                                           description=f"Your {kind} session was cancelled. No reward granted.",
                                           color=discord.Color.orange()))

    async def _send_history(self, ctx: commands.Context, kind: str):
        sessions = await self.session_helper.get_session_history(ctx.author.id, kind, limit=10)
        if not sessions:
            await ctx.send(f"You have no {kind} sessions yet.")
            return

        lines = []
        for session in sessions:
            if session.completed:
                status = "✅"
            elif session.is_cancelled:
                status = "🗑️"
            else:
                status = "⏳"
            duration = TimeHelper.format_duration(session.duration_seconds) if session.end_time else "running"
            lines.append(f"{status} <t:{session.start_time}:f> • {duration}")

        embed = discord.Embed(title=f"📜 Recent {kind.capitalize()} Sessions", description="\n".join(lines),
                              color=discord.Color.blue())
        await ctx.send(embed=embed)

    # --- Cookies ---

    @commands.command(name="cookie")
    @is_cog_ready()
    @is_not_locked()
    async def cookie_command(self, ctx: commands.Context):
        """Earn a cookie right now, outside of a hunger episode."""

        award = await self.reward_helper.grant_cookie(ctx.author.id)
        embed = discord.Embed(title="🍪 Cookie Earned", description=self._describe_award(award),
                              color=discord.Color.green())
        await ctx.send(embed=embed)

    @commands.command(name="cookies")
    @is_cog_ready()
    async def cookies_command(self, ctx: commands.Context, user: Optional[discord.Member] = None):
        """Shows cookie totals, streaks and achievements."""

        target = user or ctx.author
        stats = await self.reward_helper.get_cookie_stats(target.id)
        unlocked = self.reward_helper.unlocked_achievements(stats)
        upcoming = self.reward_helper.next_achievement(stats)

        embed = discord.Embed(title=f"🍪 {target.display_name}'s Cookie Jar", color=discord.Color.gold())
        embed.add_field(name="Total Cookies", value=str(stats.total_cookies), inline=True)
        embed.add_field(name="Current Streak", value=str(stats.current_streak), inline=True)
        embed.add_field(name="Longest Streak", value=str(stats.longest_streak), inline=True)

        counts = await self.reward_helper.cookie_counts(target.id)
        jar_lines = []
        for cookie_id, count in counts.items():
            cookie = self.catalog_helper.get_cookie(cookie_id)
            emoji = cookie.emoji if cookie and cookie.emoji else self.COOKIE_EMOJI
            jar_lines.append(f"{emoji} {cookie_id.replace('_', ' ').title()}: **{count}**")
        embed.add_field(name="By Type", value="\n".join(jar_lines) or "Empty.", inline=False)

        achievements_text = "\n".join(f"🏆 **{a.name}**" for a in unlocked) or "None yet."
        embed.add_field(name="Achievements", value=achievements_text, inline=False)

        if upcoming is not None:
            progress = stats.longest_streak if upcoming.is_streak else stats.total_cookies
            embed.set_footer(text=f"Next: {upcoming.name} ({progress}/{upcoming.requirement})")
        await ctx.send(embed=embed)

    # --- Garden ---

    @commands.command(name="garden")
    @is_cog_ready()
    async def garden_command(self, ctx: commands.Context, user: Optional[discord.Member] = None):
        """Displays a garden, its balance and inventory."""

        target = user or ctx.author
        view = await self.grid_helper.get_grid(target.id)

        embed = discord.Embed(title=f"🌱 {target.display_name}'s Garden",
                              description=self.grid_helper.render_grid(view), color=discord.Color.green())
        embed.add_field(name="Balance", value=f"{view.stats.currency_available} {self.CURRENCY_EMOJI}", inline=True)
        embed.add_field(name="Breaks Taken", value=str(view.stats.total_sessions_completed), inline=True)

        inventory_lines: List[str] = [
            f"{self.grid_helper.item_emoji(item)} {self.catalog_helper.display_name(item)} x{count}"
            for item, count in view.inventory.items()
        ]
        embed.add_field(name="Inventory", value="\n".join(inventory_lines) or "Empty.", inline=False)
        embed.set_footer(text=f"Cells are x y from 0 to {GRID_SIZE - 1}.")
        await ctx.send(embed=embed)

    @commands.command(name="gardenbuy")
    @is_cog_ready()
    @is_not_locked()
    async def gardenbuy_command(self, ctx: commands.Context, plant: str, tier: str = "basic"):
        """Buys a plant into your inventory. Inventory stock is used first."""

        self.lock_helper.add_lock(ctx.author.id, "purchase", "Your purchase is being processed.")
        try:
            result = await self.economy_helper.purchase_or_withdraw_from_inventory(
                ctx.author.id, plant.lower(), tier.lower())
        finally:
            self.lock_helper.remove_lock_for_user(ctx.author.id)

        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Purchase Failed"))
            return

        item, source = result.value
        stats = await self.economy_helper.get_garden_stats(ctx.author.id)
        desc = (f"**{self.catalog_helper.display_name(item)}** is ready in your inventory.\n{result.message}\n"
                f"Balance: **{stats.currency_available}** {self.CURRENCY_EMOJI}")
        embed = discord.Embed(title="🛒 Purchase Complete" if source == "purchase" else "📦 Already In Stock",
                              description=desc, color=discord.Color.green())
        await ctx.send(embed=embed)

    @commands.command(name="gardenplace")
    @is_cog_ready()
    @is_not_locked()
    async def gardenplace_command(self, ctx: commands.Context, x: int, y: int, item_name: str, *options: str):
        """Places a plant or ornament on a cell. Add a tier for plants, and `replace` to swap out what is there."""

        tier, replace = GridHelper.parse_place_options(options)
        item = self._resolve_item(item_name, tier)
        if item is None:
            await ctx.send(embed=discord.Embed(title="❌ Unknown Item",
                                               description=f"There is no plant or ornament called `{item_name}`.",
                                               color=discord.Color.red()))
            return

        self.lock_helper.add_lock(ctx.author.id, "placement", "Your garden is being updated.")
        try:
            result = await self.grid_helper.place_item(ctx.author.id, x, y, item, confirm_replace=replace)
        finally:
            self.lock_helper.remove_lock_for_user(ctx.author.id)

        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Placement Failed"))
            return

        placed = result.value
        desc = f"{self.grid_helper.item_emoji(item)} **{self.catalog_helper.display_name(item)}** placed at ({x}, {y})."
        if placed.paid_with == "currency" and placed.cost:
            desc += f"\nPaid **{placed.cost}** {self.CURRENCY_EMOJI}."
        if placed.displaced is not None:
            desc += f"\n{self.catalog_helper.display_name(placed.displaced)} went back to your inventory."
        await ctx.send(embed=discord.Embed(title="🌱 Placed", description=desc, color=discord.Color.green()))

    @commands.command(name="gardenremove")
    @is_cog_ready()
    @is_not_locked()
    async def gardenremove_command(self, ctx: commands.Context, x: int, y: int):
        """Moves the item on a cell back to your inventory."""

        result = await self.grid_helper.remove_item(ctx.author.id, x, y)
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Nothing Removed"))
            return
        await ctx.send(embed=discord.Embed(title="📦 Removed", description=result.message,
                                           color=discord.Color.green()))

    @commands.command(name="gardensell")
    @is_cog_ready()
    @is_not_locked()
    async def gardensell_command(self, ctx: commands.Context, x: int, y: int):
        """Sells the plant on a cell."""
        await self._sell(ctx, ItemRef.cell(x, y))

    @commands.command(name="gardensellinv")
    @is_cog_ready()
    @is_not_locked()
    async def gardensellinv_command(self, ctx: commands.Context, plant: str, tier: str = "basic"):
        """Sells one plant from your inventory."""

        item = self._resolve_item(plant, tier)
        if item is None:
            await ctx.send(embed=discord.Embed(title="❌ Unknown Item",
                                               description=f"There is no plant called `{plant}` ({tier}).",
                                               color=discord.Color.red()))
            return
        await self._sell(ctx, ItemRef.inventory(item))

    async def _sell(self, ctx: commands.Context, ref: ItemRef):
        result = await self.economy_helper.sell_item(ctx.author.id, ref)
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Sale Failed"))
            return

        stats = await self.economy_helper.get_garden_stats(ctx.author.id)
        desc = f"{result.message}\nBalance: **{stats.currency_available}** {self.CURRENCY_EMOJI}"
        await ctx.send(embed=discord.Embed(title="💰 Sold", description=desc, color=discord.Color.green()))

    @commands.command(name="gardenupgrade")
    @is_cog_ready()
    @is_not_locked()
    async def gardenupgrade_command(self, ctx: commands.Context, x: int, y: int):
        """Upgrades the plant on a cell to its next tier."""

        result = await self.economy_helper.upgrade_item(ctx.author.id, ItemRef.cell(x, y))
        if not result.ok:
            await ctx.send(embed=self._failure_embed(result, "Upgrade Failed"))
            return

        stats = await self.economy_helper.get_garden_stats(ctx.author.id)
        desc = f"{result.message}\nBalance: **{stats.currency_available}** {self.CURRENCY_EMOJI}"
        await ctx.send(embed=discord.Embed(title="⬆️ Upgraded", description=desc, color=discord.Color.green()))

    @commands.command(name="gardenprices")
    @is_cog_ready()
    async def gardenprices_command(self, ctx: commands.Context):
        """Lists plant prices and sell values."""

        embed = discord.Embed(title="🏷️ Garden Prices", color=discord.Color.blue())
        for plant in self.catalog_helper.plants_by_id.values():
            lines = []
            for tier in PLANT_TIERS:
                item = self.catalog_helper.plant_item(plant.id, tier)
                cost = self.catalog_helper.acquisition_cost(plant.id, tier)
                lines.append(f"{self.grid_helper.item_emoji(item)} {self.catalog_helper.display_name(item)}: "
                             f"{cost} / sells {self.catalog_helper.sell_value(item)}")
            embed.add_field(name=f"{plant.id.capitalize()}", value="\n".join(lines), inline=True)
        embed.set_footer(text=f"Higher tiers need one of the tier below. Prices in {self.CURRENCY_EMOJI}.")
        await ctx.send(embed=embed)

    # --- Admin ---

    @commands.group(name="fungeradmin")
    @is_cog_ready()
    @commands.is_owner()
    async def cmd_admin_group(self, ctx: commands.Context):
        """Base command for owner-only Funger utilities."""
        pass

    @cmd_admin_group.command(name="setcurrency")
    async def admin_setcurrency_command(self, ctx: commands.Context, amount: int, target_user: discord.Member):
        """Corrects a user's available currency. Excess daisies are reclaimed."""

        if amount < 0:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Input", description="Amount cannot be negative.",
                                               color=discord.Color.red()))
            return

        original = await self.economy_helper.get_garden_stats(target_user.id)
        report = await self.economy_helper.apply_currency_correction(target_user.id, amount)

        embed = discord.Embed(title="⚙️ Currency Corrected", color=discord.Color.orange())
        embed.add_field(name="Target User", value=target_user.mention, inline=True)
        embed.add_field(name="Original", value=f"{original.currency_available} {self.CURRENCY_EMOJI}", inline=True)
        embed.add_field(name="New", value=f"{amount} {self.CURRENCY_EMOJI}", inline=True)
        if report.total:
            embed.add_field(name="Reclaimed Daisies",
                            value=f"{report.reclaimed_from_inventory} from inventory, "
                                  f"{len(report.reclaimed_from_grid)} from the grid", inline=False)
        await ctx.send(embed=embed)

    @cmd_admin_group.command(name="ornaments")
    async def admin_ornaments_command(self, ctx: commands.Context, enabled: Optional[bool] = None):
        """Shows or toggles the ornament bonus subsystem."""

        if enabled is not None:
            self.game_state_helper.set_global_state("ornaments_enabled", enabled)
            await self.logger.log_to_discord(f"Admin: Ornaments {'enabled' if enabled else 'disabled'}.", "INFO")

        state = self.game_state_helper.get_global_state("ornaments_enabled")
        await ctx.send(embed=discord.Embed(title="⚙️ Ornament Subsystem",
                                           description=f"Ornaments are **{'enabled' if state else 'disabled'}**.",
                                           color=discord.Color.blue()))

    @cmd_admin_group.command(name="grassminutes")
    async def admin_grassminutes_command(self, ctx: commands.Context, minutes: Optional[int] = None):
        """Sets or displays the Touch Grass break length in minutes."""

        current = self.game_state_helper.get_global_state("grass_session_minutes")
        if minutes is None:
            await ctx.send(f"Touch Grass breaks last **{current} minutes**.")
            return

        if minutes <= 0:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Input", description="Minutes must be positive.",
                                               color=discord.Color.red()))
            return

        self.game_state_helper.set_global_state("grass_session_minutes", minutes)
        await ctx.send(f"Touch Grass break length changed from {current} to **{minutes} minutes**.")

    @cmd_admin_group.command(name="logchannel")
    async def admin_logchannel_command(self, ctx: commands.Context, channel: discord.TextChannel):
        """Sets the channel that receives Funger logs."""

        self.game_state_helper.set_global_state("log_channel_id", channel.id)
        self.logger.log_channel_id = channel.id
        await ctx.send(f"Logs will be sent to {channel.mention}.")

    @cmd_admin_group.command(name="loglevel")
    async def admin_loglevel_command(self, ctx: commands.Context, level: str):
        """Sets the lowest level that reaches the log channel (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

        try:
            self.logger.set_min_level(level)
        except ValueError as e:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Input", description=str(e), color=discord.Color.red()))
            return

        self.game_state_helper.set_global_state("log_level", self.logger.min_level)
        await ctx.send(f"Log level set to **{self.logger.min_level}**.")

    @cmd_admin_group.command(name="logs")
    async def admin_logs_command(self, ctx: commands.Context, limit: int = 10):
        """Shows the most recent Funger log entries."""

        entries = self.logger.recent(min(limit, 25))
        lines = [f"`{timestamp}` **{level}** {message[:150]}" for timestamp, level, message in entries]
        embed = discord.Embed(title="📜 Recent Logs", description="\n".join(lines) or "Nothing logged yet.",
                              color=discord.Color.blurple())
        embed.set_footer(text=f"Level: {self.logger.min_level}")
        await ctx.send(embed=embed)

    @cmd_admin_group.command(name="audit")
    async def admin_audit_command(self, ctx: commands.Context, target_user: discord.Member):
        """Checks a user's cached stats and balance against their event log and ledger."""

        drift = await self.reward_helper.audit_stats(target_user.id)
        currency = await self.economy_helper.audit_currency(target_user.id)

        embed = discord.Embed(title=f"🔍 Audit: {target_user.display_name}",
                              color=discord.Color.green() if not drift and currency["consistent"]
                              else discord.Color.red())
        drift_text = "\n".join(f"`{name}`: expected {exp}, cached {act}" for name, (exp, act) in drift.items())
        embed.add_field(name="Stats", value=drift_text or "Consistent.", inline=False)
        embed.add_field(name="Currency", value=f"Expected {currency['expected']}, actual {currency['actual']}",
                        inline=False)
        await ctx.send(embed=embed)

    @cmd_admin_group.command(name="save")
    async def admin_save_command(self, ctx: commands.Context):
        """Commits the in-memory game state to disk now."""

        await self.game_state_helper.commit_to_disk()
        await ctx.send("✅ Game state saved.")
