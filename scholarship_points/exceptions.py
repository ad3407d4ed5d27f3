"""
Custom exceptions for the points engine.
Each type maps to one HTTP status in main.py; none of them leaves partial state behind.
"""
from typing import Optional


class PointsEngineError(Exception):
    """Base exception for the points engine"""
    pass


class ValidationError(PointsEngineError):
    """Raised when configuration, level or event input is malformed"""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Validation error for {field}: {message}")


class NotFoundError(PointsEngineError):
    """Raised when a configuration version, level, student or transaction is unknown"""
    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        if identifier in (None, ""):
            super().__init__(f"{resource} not found")
        else:
            super().__init__(f"{resource} {identifier} not found")


class ConflictError(PointsEngineError):
    """Raised when an operation contradicts current state"""
    def __init__(self, message: str, resource: Optional[str] = None):
        self.resource = resource
        super().__init__(message)


class NotConfiguredError(PointsEngineError):
    """Raised when an award is requested before any configuration is active"""
    def __init__(self):
        super().__init__("No active point configuration")
