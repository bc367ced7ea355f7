"""Exceptions raised by the compliance domain."""


class ComplianceError(Exception):
    """Base class for compliance engine errors."""


class CaseNotFound(ComplianceError, LookupError):
    def __init__(self, case_id: str) -> None:
        super().__init__(f"AML case {case_id} not found")
        self.case_id = case_id


class InvalidCaseTransition(ComplianceError, ValueError):
    def __init__(self, case_number: str, current: str, requested: str) -> None:
        super().__init__(
            f"Case {case_number} cannot move from '{current}' to '{requested}'"
        )
        self.case_number = case_number
        self.current = current
        self.requested = requested


class RuleConfigurationError(ComplianceError, ValueError):
    """A stored monitoring rule has conditions that do not match its type."""
