# Overview: Lookups over the capability definitions.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_codes():
    """Get list of all capability codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def validate_permission_code(code):
    """Raise ValueError for a capability code nothing defines."""
    if code not in get_all_permission_codes():
        raise ValueError(f"Unknown permission code: {code}")
    return code
