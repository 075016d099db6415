"""
Shared module for common utilities used by the realtime gateway and CLI.

STRUCTURE:
- shared.security: Authentication
  - auth.py: JWT signing/verification (PyJWT)

- shared.infrastructure: Database and log correlation
  - db.py: SQLAlchemy engine and session factory
  - correlation.py: Connection ID context for log records

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging and audit helpers

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, sign_jwt
    from shared.infrastructure.db import get_db_context
    from shared.config.settings import settings
    from shared.config.logging import get_logger
"""
