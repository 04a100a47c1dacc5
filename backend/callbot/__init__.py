"""
Calling Bot
Call orchestration over Microsoft Graph Communications
"""
__version__ = "1.0.0"
