"""Business logic services for HomeQuest."""
