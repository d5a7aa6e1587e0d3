"""Utility modules for HomeQuest."""
