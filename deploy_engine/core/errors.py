# deploy_engine/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class DeployEngineError(Exception):
    """Base class for all deploy engine errors."""
    pass


# -----------------------------
# Validation Errors
# -----------------------------

class ValidationError(DeployEngineError):
    """Invalid input or a change the platform does not allow."""
    pass


class FrameworkChangeError(ValidationError):
    """Framework of an existing application cannot be changed."""
    pass


class ClusterIssuerRequired(ValidationError):
    """Secure domains need a cluster issuer on the framework."""
    pass


class SelectorError(ValidationError):
    """Selector did not resolve to any deployment/process."""
    pass


class ProcfileError(ValidationError):
    """Process file missing, malformed, or image has nothing to run."""
    pass


# -----------------------------
# Persistence Errors
# -----------------------------

class PersistenceError(DeployEngineError):
    pass


class ApplicationNotFound(PersistenceError):
    pass


class FrameworkNotFound(PersistenceError):
    pass


class ApplicationConflictError(PersistenceError):
    """Stored application changed since it was read."""
    pass


class ApplicationAlreadyExists(ApplicationConflictError):
    pass


class RetryLimitExceeded(DeployEngineError):
    """Conflicts kept happening after the last allowed attempt."""
    pass


# -----------------------------
# Collaborator Errors
# -----------------------------

class UpstreamError(DeployEngineError):
    """Builder or image registry failed."""
    pass


class FieldNotSupplied(DeployEngineError):
    """Change set field was not provided by the caller."""

    def __init__(self, field_name: str):
        super().__init__(f"{field_name} not supplied")
        self.field_name = field_name
