"""Todo list JSON API."""
