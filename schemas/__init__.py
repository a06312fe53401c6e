"""
Pydantic schemas for DriveAssist Backend.

Contains all API request/response schemas organized by module.
"""

from .responses import StandardSuccessResponse, AuthTokenResponse, PaginatedData
from .common import BaseSchema
