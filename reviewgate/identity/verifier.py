"""
Email verification for invitation acceptance.
"""


def emails_match(target_email: str, identity_email: str) -> bool:
    """
    Compare an invitation's target email with the authenticated email.

    Only case is folded. Surrounding whitespace and provider aliases
    (``user+tag@``, dotted gmail addresses) are *not* normalized, so
    ``" a@b.com"`` does not match ``"a@b.com"``.
    """
    return target_email.lower() == identity_email.lower()
