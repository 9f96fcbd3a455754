from discord_purge.cli import main

main()
