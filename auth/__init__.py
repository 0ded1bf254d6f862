"""auth/ -- Authentication and authorization package for AdPanel.

Layer rule: auth/ imports only stdlib + third-party libraries and core/.
It does NOT import from api/, web/, audit/, maintenance/ or client/.
api/ and web/ import from auth/, not the other way around.
"""
