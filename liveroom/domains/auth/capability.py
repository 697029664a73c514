# liveroom/domains/auth/capability.py
"""
Capability check for room mutations.

The core only asks one question: may this principal mutate room X. Any role model can
answer it by replacing `capability_checker`.
"""
from typing import Optional, Protocol

from liveroom.core.config import settings


class CapabilityChecker(Protocol):
    def can_mutate_room(self, principal: Optional[dict], room_id: str) -> bool: ...


class ClaimsCapabilityChecker:
    """Grants every room to the admin role, otherwise the rooms listed in the token."""

    def can_mutate_room(self, principal: Optional[dict], room_id: str) -> bool:
        if not principal:
            return False
        if principal.get("role") == settings.ADMIN_ROLE:
            return True
        return room_id in (principal.get("rooms") or [])


capability_checker: CapabilityChecker = ClaimsCapabilityChecker()


def set_capability_checker(checker: CapabilityChecker):
    global capability_checker
    capability_checker = checker
