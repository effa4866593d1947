"""Court and prison role-play bot for Discord guilds."""
