"""
VibeSync: shared Spotify listening sessions.
"""
