"""
Handshake authentication for Socket.IO connections.

The credential comes from the handshake `auth` payload (`{"token": ...}`)
or, failing that, a `Authorization: Bearer ...` header. It is verified with
the same rule as HTTP access tokens. Any failure refuses the connection
before a session, room or handler is attached.
"""

from socketio.exceptions import ConnectionRefusedError

from app.auth.verify import AuthenticationError, resolve_identity
from app.infrastructure.observability.logging import get_logger
from app.models.domain.user_domain import AuthenticatedUser

logger = get_logger(__name__)


def extract_token(auth: dict | None, environ: dict) -> str | None:
    if isinstance(auth, dict):
        token = auth.get("token")
        if token:
            return str(token)

    header = environ.get("HTTP_AUTHORIZATION", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()

    return None


async def authenticate_handshake(sid: str, environ: dict, auth: dict | None) -> AuthenticatedUser:
    """Resolve the connecting user or raise ConnectionRefusedError."""
    token = extract_token(auth, environ)
    if not token:
        logger.warning("Socket connection refused: no token", sid=sid)
        raise ConnectionRefusedError("Authentication error: Token not provided")

    try:
        return await resolve_identity(token)
    except AuthenticationError as e:
        logger.warning("Socket connection refused", sid=sid, reason=str(e))
        raise ConnectionRefusedError("Authentication error: Invalid token") from e
    except Exception as e:
        logger.error("Socket authentication failed unexpectedly", sid=sid, error=str(e))
        raise ConnectionRefusedError("Authentication error: Unable to verify user") from e
