"""auth/ -- Accounts, passwords, sessions, and request authentication for F1 Stats.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, or stats/.
api/ and web/ import from auth/, not the other way around.
"""
