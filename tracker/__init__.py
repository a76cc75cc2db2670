"""
Tracker package: persistent tracking records and the MangaDex API client.

This package contains:
- Pydantic models for tracked manga and MangaDex API payloads
- MongoDB-backed tracking store
- MangaDex API client
- Error taxonomy shared by every component
"""
