"""
Services module for DriveAssist Backend.

Contains business logic and external service integrations.
"""
