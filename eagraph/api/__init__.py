"""
Read-only HTTP surface for UI collaborators.

Usage:
    uvicorn eagraph.api.server:app --reload
"""
