"""auth/ -- Authentication and authorization package for Avatar Engine.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or avatars/.
api/ imports from auth/, not the other way around.
"""
