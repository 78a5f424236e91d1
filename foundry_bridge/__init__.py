"""Azure Foundry chat-completions bridge for Gemini-style content generators."""
