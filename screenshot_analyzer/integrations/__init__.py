"""
Integrations with external services: the AI vision API and Telegram.
"""
