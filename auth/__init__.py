"""auth/ -- Authentication and authorization package for AutoMarket.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or market/.
api/ imports from auth/, not the other way around.
"""
