"""auth/ -- Identity core for the SSO service.

Login, registration and admin lookup for multi-tenant deployments. The
service talks to persistence only through the capability Protocols in
auth/contracts.py and issues app-scoped JWTs through auth/tokens.py.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or main.py. api/ imports from auth/, not the
other way around.
"""
