"""subsonic/ -- Subsonic/OpenSubsonic wire protocol: error codes, payloads, envelope.

Layer rule: subsonic/ imports only stdlib + third-party libraries (FastAPI
types for the response helper). It does NOT import from api/, auth/ or
library/. Route handlers build payloads and hand them to the envelope.
"""
