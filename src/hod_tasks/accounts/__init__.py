"""User accounts, identity resolution and teacher management."""
