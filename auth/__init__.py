"""auth/ -- Authorization resolution engine for ConsoleGuard.

store -> resolver -> tokens -> service, with dependencies.py as the request gate.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
