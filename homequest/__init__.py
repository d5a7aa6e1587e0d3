"""HomeQuest - family chores, allowance ledger and gamification service."""

__version__ = '0.4.0'
