# scripts/dev_jwt_token.py
import sys
from datetime import timedelta

from liveroom.core.config import settings
from liveroom.shared.utils.security import create_access_token


def main():
    # no room ids -> admin token for every room
    rooms = sys.argv[1:]
    claims = {"sub": "dev-operator"}
    if rooms:
        claims["rooms"] = rooms
    else:
        claims["role"] = settings.ADMIN_ROLE
    print(create_access_token(claims, timedelta(days=30)))


if __name__ == "__main__":
    main()
