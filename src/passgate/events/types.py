"""Event type constants.

Learn: Centralizing event types as constants prevents typos and
makes it easy to discover all event types in the system.
"""

# ─── Local accounts ──────────────────────────────────────

USER_REGISTERED = "user.registered"
USER_LOGGED_IN = "user.logged_in"
USER_PROMOTED = "user.promoted"

# ─── Sessions ────────────────────────────────────────────

SESSION_REFRESHED = "session.refreshed"
SESSION_REVOKED = "session.revoked"

# ─── Federated identities ────────────────────────────────

IDENTITY_LINKED = "identity.linked"
FEDERATED_LOGGED_IN = "federated.logged_in"
