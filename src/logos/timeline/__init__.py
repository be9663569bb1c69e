"""Relationship timeline: unified, cursor-paginated event feed across CRM tables."""
