"""
External collaborators: Claude (agent), Telegram (chat transport),
Mindee (document extraction).
"""
