"""auth/ -- The identity core: credentials, bearer tokens, external identity linking.

Layer rule: auth/ imports only stdlib + third-party libraries (plus core.config
for typing). It does NOT import from api/. api/ imports from auth/, not the
other way around.
"""
