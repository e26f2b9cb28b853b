class InvalidInputError(ValueError):
    """Raised when an input violates a shape, column or value contract."""


class UndefinedProximityError(ArithmeticError):
    """Raised when an out-of-bag proximity has no jointly out-of-bag tree."""


class UndefinedProximityWarning(UserWarning):
    """Some out-of-bag proximities were undefined and replaced by NaN or a fallback."""


class DegenerateClusterWarning(UserWarning):
    """A singleton cluster was found; its silhouette width is set to 0."""
