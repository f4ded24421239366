import discord
from redbot.core import commands


def is_not_locked():
    """
    A commands.check decorator that fails while the command author has an operation in flight.
    Uses the LockHelper to check the user's status.
    """

    async def predicate(ctx: commands.Context):
        if not hasattr(ctx.cog, 'lock_helper'):
            return True

        lock = ctx.cog.lock_helper.get_user_lock(ctx.author.id)
        if lock:
            embed = discord.Embed(
                title=f"⏳ Hold On: {lock.get('type', 'Action').capitalize()} In Progress",
                description=f"{ctx.author.mention}, please wait for your last action to finish.\n\n*_"
                            f"{lock.get('message', 'You are busy with another task.')}_*",
                color=discord.Color.orange()
            )
            embed.set_footer(text="Funger - Garden Keeper")
            await ctx.send(embed=embed)
            return False
        return True

    return commands.check(predicate)


def is_cog_ready():
    """
    A commands.check decorator that fails until the game state has been loaded.
    This prevents commands from running during the initial startup sequence.
    """

    async def predicate(ctx: commands.Context):
        if not getattr(ctx.cog, '_initialized', False):
            embed = discord.Embed(
                title="⏳ Still Waking Up",
                description="Funger is still loading your cookies and gardens. Try again in a moment.",
                color=discord.Color.orange()
            )
            await ctx.send(embed=embed, delete_after=10)
            return False
        return True

    return commands.check(predicate)
