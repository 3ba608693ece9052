"""passgate — authentication and session management service.

Verifies credentials, issues signed access/refresh token pairs, rotates
refresh tokens against a Redis-backed session registry, and links
federated identities (GitHub OAuth, Firebase ID tokens) to local
principals. Resource services consume only the access-token verifier.
"""

__version__ = "0.1.0"
