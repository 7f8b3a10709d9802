"""Service layer for accounts, the social graph, content and messaging."""
