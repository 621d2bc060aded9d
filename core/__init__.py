"""Core domain logic for medication reminders and adherence tracking.

This package contains the business logic and domain models,
isolated from storage and notification channels for easy testing and reasoning.
"""
