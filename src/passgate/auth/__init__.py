"""Authentication primitives.

Learn: Three building blocks used by the AuthService and the API layer:
1. password.py → bcrypt hashing, run off the event loop
2. jwt.py → access/refresh token signing and verification
3. dependencies.py → FastAPI Depends() that resolve the current principal

Resource modules only ever import get_current_principal from here.
"""
