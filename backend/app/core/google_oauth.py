"""
Google OAuth utilities.

The frontend runs Google Sign-In and posts the resulting ID token to
/auth/google; verify_google_token checks it server-side and returns the
claims we use to find or create the account.

References:
-----------
- Google OAuth2: https://developers.google.com/identity/protocols/oauth2
- google-auth library: https://google-auth.readthedocs.io/
"""

from typing import Any

from fastapi import HTTPException, status
from google.auth.transport import requests
from google.oauth2 import id_token

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


async def verify_google_token(token: str) -> dict[str, Any]:
    """
    Verify a Google ID token and extract the user's identity.

    Returns:
        {"email", "name", "picture", "email_verified", "sub"}

    Raises:
        HTTPException 401: bad signature, wrong audience/issuer, expired
        token or unverified email.
    """
    try:
        idinfo = id_token.verify_oauth2_token(
            token,
            requests.Request(),
            settings.GOOGLE_CLIENT_ID
        )

        if idinfo["iss"] not in GOOGLE_ISSUERS:
            logger.warning("google_token_invalid_issuer", issuer=idinfo["iss"])
            raise ValueError("Invalid issuer")

        if not idinfo.get("email_verified", False):
            logger.warning("google_email_not_verified", email=idinfo.get("email"))
            raise ValueError("Email not verified")

        logger.info("google_token_verified", email=idinfo.get("email"))

        return {
            "email": idinfo["email"],
            "name": idinfo.get("name", ""),
            "picture": idinfo.get("picture", ""),
            "email_verified": idinfo.get("email_verified", False),
            "sub": idinfo["sub"],
        }

    except ValueError as e:
        logger.error("google_token_verification_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Google token: {str(e)}"
        )
    except Exception as e:
        logger.error("google_token_unexpected_error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not verify Google token"
        )


def check_google_oauth_configured() -> bool:
    return bool(settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET)
