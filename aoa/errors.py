"""Error kinds raised during AOA estimation."""


class AOAError(Exception):
    """Base class for all AOA estimation errors."""


class DegenerateVariable(AOAError, ValueError):
    """A predictor has zero or undefined variance in the training data."""

    def __init__(self, variable: str, stage: str = "standardize", detail: str = ""):
        self.variable = variable
        self.stage = stage
        msg = f"Degenerate variable '{variable}' during {stage}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class WeightVariableMismatch(AOAError, ValueError):
    """Importance weights do not cover exactly the predictor variables in use."""

    def __init__(self, missing=(), unexpected=()):
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        super().__init__(
            f"Importance weights must match the predictor variables exactly "
            f"(missing: {self.missing}, unexpected: {self.unexpected})"
        )


class InsufficientTrainingData(AOAError, ValueError):
    """Fewer usable training points than a computation stage needs."""

    def __init__(self, n_points: int, stage: str, required: int = 2):
        self.n_points = n_points
        self.stage = stage
        self.required = required
        super().__init__(
            f"Insufficient training data for {stage}: {n_points} usable point(s), at least {required} required"
        )


class NoEligibleReference(AOAError, LookupError):
    """Every reference point is excluded for a leave-fold-out query."""

    def __init__(self, fold=None):
        self.fold = fold
        if fold is None:
            msg = "No eligible reference point left after excluding the query itself"
        else:
            msg = f"No eligible reference point left after excluding fold {fold!r}"
        super().__init__(msg)
