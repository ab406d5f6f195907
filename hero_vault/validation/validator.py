"""
Two-Stage Identity Validation

DESIGN DECISION: Binding a session validates the submitted identity
in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Display name present
- Email syntax
- This catches typos before any network call

STAGE 2 - SEMANTIC VALIDATION:
- Key collision detection: the email is normalized into a storage key,
  and that mapping is lossy. If a record already lives under the key and
  belongs to a different email, the identity is rejected.
- This needs the sync gateway

IMPORTANT: Validation NEVER silently fixes issues.
A colliding identity is reported, not merged into someone else's record.
"""

import re
from typing import Optional

from hero_vault.models.validation import IdentityValidationResult, ValidationIssue
from hero_vault.services.storage import NotFoundError, PlayerSyncGateway


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MAX_NAME_LENGTH = 100


class IdentityValidator:
    """
    Validates a name + email pair before a session is bound.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (needs storage for the collision check)
    """

    def __init__(
        self,
        gateway: Optional[PlayerSyncGateway] = None,
    ):
        """
        Initialize validator.

        Args:
            gateway: Sync gateway for the collision check.
                     If None, stage 2 is skipped.
        """
        self._gateway = gateway

    def _validate_schema(
        self,
        name: str,
        email: str,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Adventurer name is required",
                severity="error",
                suggested_fix="Enter the name you want to be known by",
            ))
        elif len(name) > MAX_NAME_LENGTH:
            issues.append(ValidationIssue(
                field="name",
                issue_type="too_long",
                message=f"Adventurer name is longer than {MAX_NAME_LENGTH} characters",
                severity="error",
            ))

        if not email:
            issues.append(ValidationIssue(
                field="email",
                issue_type="missing",
                message="Email is required",
                severity="error",
            ))
        elif not EMAIL_PATTERN.match(email):
            issues.append(ValidationIssue(
                field="email",
                issue_type="invalid_format",
                message=f"'{email}' is not a valid email address",
                severity="error",
                suggested_fix="Use the form name@example.com",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    async def _validate_semantic(
        self,
        email: str,
    ) -> tuple[bool, list[ValidationIssue], bool, Optional[str]]:
        """
        Stage 2: Semantic validation.

        Sync errors are not caught: a bind that cannot reach storage fails.

        Returns: (is_valid, issues, record_exists, stored_email)
        """
        issues = []

        if self._gateway is None:
            return True, issues, False, None

        try:
            stored = await self._gateway.load(email)
        except NotFoundError:
            return True, issues, False, None

        if stored.email != email:
            issues.append(ValidationIssue(
                field="email",
                issue_type="identity_collision",
                message=(
                    f"'{email}' maps to the same storage key as another "
                    "adventurer's email"
                ),
                severity="error",
                suggested_fix="Use a different email address",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues, True, stored.email

    async def validate(
        self,
        name: str,
        email: str,
    ) -> IdentityValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            name: Display name as entered
            email: Email as entered

        Returns:
            IdentityValidationResult with all issues found
        """
        name = (name or "").strip()
        email = (email or "").strip()

        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(name, email)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        record_exists = False
        stored_email = None
        player_key = None
        if schema_valid:
            if self._gateway is not None:
                player_key = self._gateway.key_for(email)
            semantic_valid, semantic_issues, record_exists, stored_email = (
                await self._validate_semantic(email)
            )
            all_issues.extend(semantic_issues)

        return IdentityValidationResult(
            name=name,
            email=email,
            player_key=player_key,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            record_exists=record_exists,
            stored_email=stored_email,
            issues=all_issues,
        )

    def get_user_friendly_summary(
        self,
        result: IdentityValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid:
            return "✅ Welcome, adventurer!"

        lines = ["❌ We could not start your adventure:"]
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        return "\n".join(lines)
