"""auth/ -- Authentication package for SonicGate.

Layer rule: auth/ imports only stdlib + third-party libraries and core/.
It does NOT import from api/, library/ or subsonic/ (dependencies.py is the
one FastAPI seam and may import subsonic.errors to raise protocol errors).
api/ imports from auth/, not the other way around.
"""
