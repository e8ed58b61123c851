"""
Gravitas — Community & Events Platform API
===========================================
Users join and follow communities, attend events, read community updates
and receive notifications.  Site administrators review newly created
communities before they become public.

Package layout::

    gravitas/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Shared limits, defaults, validation patterns
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   └── models.py      # All ORM models
    ├── services/
    │   ├── community_service.py     # Profiles, membership, follows, updates
    │   ├── event_service.py         # Events, RSVPs, following feed
    │   ├── discovery_service.py     # Explore, search, home feed
    │   ├── profile_service.py       # Own profile + activity stats
    │   ├── admin_service.py         # Review queue + platform stats
    │   ├── notification_service.py  # Notification feed + preferences
    │   ├── verification_service.py  # OTPs + e-mail verification links
    │   ├── mail_service.py          # SMTP delivery
    │   ├── passwords.py             # Argon2 hashing
    │   └── log_buffer.py            # In-memory log capture for monitoring
    └── api/
        ├── main.py        # FastAPI app + error handlers
        ├── deps.py        # Engine/config injection, token verification
        ├── auth.py        # Registration, OTP, sessions
        ├── rate_limit.py  # DB-backed sliding-window limiter
        └── routes/        # Admin, communities, events, following, user, discovery
"""

__version__ = "0.1.0"
