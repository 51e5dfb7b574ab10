"""HTTP surface of the bot."""
