"""Organizer dashboard: engagement analytics over students of an organization."""
