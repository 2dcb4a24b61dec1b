"""
Viewer: read-only HTTP access to a fleetmap storage root

    uvicorn viewer.server:app --port 8000
"""
