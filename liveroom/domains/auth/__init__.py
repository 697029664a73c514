from .capability import CapabilityChecker, ClaimsCapabilityChecker, set_capability_checker

__all__ = ["CapabilityChecker", "ClaimsCapabilityChecker", "set_capability_checker"]
