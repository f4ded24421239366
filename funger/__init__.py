async def setup(bot):
    from .funger import Funger

    await bot.add_cog(Funger(bot))
