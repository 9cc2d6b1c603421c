"""
Session record models for VibeSync
"""

from .session_models import *
