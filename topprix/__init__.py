"""TopPrix-DZ backend.

HTTP API and Telegram bot that answer product price questions for the
Algerian market, either through a Groq-hosted LLM or with mock listings.
"""
