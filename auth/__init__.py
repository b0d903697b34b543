"""auth/ -- Authentication and user-lifecycle package for ImageDrop.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/. api/ imports from auth/, not the other way
around. The one exception is auth/dependencies.py, which is FastAPI glue.
"""
