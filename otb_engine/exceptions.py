class OTBError(Exception):
    """Base exception for Inventory Decision Engine errors."""

    default_message = "An error occurred in the Inventory Decision Engine"
    default_code = None

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class InvalidConfigError(OTBError):
    """Exception raised when a configuration is rejected before computation."""

    default_message = "Invalid configuration"
    default_code = "INVALID_CONFIG"


class InsufficientHistoryError(OTBError):
    """Exception raised when fewer observations exist than the lookback window."""

    default_message = "Insufficient history"
    default_code = "INSUFFICIENT_HISTORY"


class ValidationError(OTBError):
    """Exception raised for structural validation failures of engine inputs."""

    default_message = "Validation error"
    default_code = "VALIDATION_ERROR"


class PlanStateError(OTBError):
    """Exception raised for illegal status transitions."""

    default_message = "Invalid status transition"
    default_code = "INVALID_TRANSITION"


class ForecastError(OTBError):
    """Exception raised for forecasting-related errors."""

    default_message = "Forecasting error"
    default_code = "FORECAST_ERROR"


class OptimizationError(OTBError):
    """Exception raised for markdown optimization errors."""

    default_message = "Markdown optimization error"
    default_code = "OPTIMIZATION_ERROR"


class SimulationError(OTBError):
    """Exception raised for scenario simulation errors."""

    default_message = "Simulation error"
    default_code = "SIMULATION_ERROR"
