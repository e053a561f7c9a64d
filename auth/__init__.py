"""auth/ -- Authentication, session tokens and TOTP two-factor for Login App.

Layer rule: auth/ imports only stdlib + third-party libraries, plus the
Settings type from core/. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
