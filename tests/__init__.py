"""
Policy Bot Tests

Unit tests for the onboarding flow and its collaborators. All upstream
services (Telegram, Mindee, Claude) are replaced by mocks.

Running Tests:
    pytest tests/ -v
"""
