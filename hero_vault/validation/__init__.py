"""Identity validation package."""

from hero_vault.validation.validator import EMAIL_PATTERN, IdentityValidator

__all__ = ["EMAIL_PATTERN", "IdentityValidator"]
