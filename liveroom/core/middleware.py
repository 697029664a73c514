from starlette.requests import Request

from liveroom.shared.utils.security import decode_token


async def auth_middleware(request: Request, call_next):
    """
    Attach the bearer token's claims as request.state.principal.

    Participants are anonymous, so a missing or invalid token is not an error here;
    operator endpoints reject through the capability check instead.
    """
    request.state.principal = None

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        request.state.principal = decode_token(token)

    return await call_next(request)
