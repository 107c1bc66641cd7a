import jwt
from jwt import PyJWKClient
from fastapi import HTTPException, Depends, Request

# --- Verify incoming bearer token from the SPA (audience = AUTH0_AUDIENCE) ---


class TokenVerifier:
    def __init__(self, jwks_uri: str, issuer: str, audience: str, jwks_client: PyJWKClient | None = None):
        self.issuer = issuer
        self.audience = audience
        self._jwks_client = jwks_client or PyJWKClient(jwks_uri)

    def verify(self, token: str) -> dict:
        try:
            signing_key = self._jwks_client.get_signing_key_from_jwt(token).key
            return jwt.decode(
                token,
                signing_key,
                algorithms=["RS256"],
                audience=self.audience,   # MUST match the Auth0 API identifier
                issuer=self.issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise HTTPException(status_code=401, detail=f"Invalid token: {e}")


def _get_bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return auth.split(" ", 1)[1].strip()


def verify_jwt(request: Request) -> dict:
    token = _get_bearer_token(request)
    verifier: TokenVerifier = request.app.state.verifier
    return verifier.verify(token)


def current_user(claims: dict = Depends(verify_jwt)) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="User ID not found in token")
    return user_id
