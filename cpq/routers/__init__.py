"""
routers/ — FastAPI route modules.

activity.py   — editing-context lifecycle, bulk markers, log queries
components.py — component writes (the per-row activity trigger point)

Routers validate input, resolve the team from the current user, and
call services/.
"""
