"""auth/ -- Authentication protocol package for the auth service.

Layer rule: auth/ imports from core/, stores/ and third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
