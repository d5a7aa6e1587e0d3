"""Background jobs for HomeQuest."""
