from typing import Any


class AlignmentException(Exception):
    pass

class InvalidConfigurationException(AlignmentException, ValueError):
    def __init__(self, reason: str):
        super().__init__(f"Invalid alignment configuration: {reason}")

class InvalidGapPenaltyException(InvalidConfigurationException):
    def __init__(self, open_penalty: int, extension_penalty: int):
        self.open_penalty = open_penalty
        self.extension_penalty = extension_penalty
        super().__init__(f"gap penalties must be non-negative integers (open={open_penalty}, extension={extension_penalty}).")

class UnknownSymbolException(InvalidConfigurationException):
    def __init__(self, symbol: Any, alphabet: str):
        self.symbol = symbol
        super().__init__(f"symbol {symbol!r} is not in the scoring alphabet \"{alphabet}\".")

class ArithmeticOverflowException(AlignmentException, ArithmeticError):
    def __init__(self, operation: str, left: Any, right: Any):
        self.operation = operation
        super().__init__(f"{operation} of {left} and {right} leaves the representable score range.")

class InvalidArgumentException(AlignmentException, ValueError):
    def __init__(self, argument_name: str, value: Any, expectation: str):
        self.argument_name = argument_name
        super().__init__(f"Invalid value for \"{argument_name}\" ({value!r}): expected {expectation}.")

class UnsupportedModeException(AlignmentException, ValueError):
    def __init__(self, mode: Any):
        self.mode = mode
        super().__init__(f"Unsupported alignment mode {mode!r} (expected \"global\" or \"local\").")

class EstimationTimeoutException(AlignmentException, TimeoutError):
    def __init__(self, timeout: float, completed_batches: int, batches: int):
        self.timeout = timeout
        super().__init__(f"Significance estimation exceeded {timeout} seconds with {completed_batches} of {batches} trial batches complete.")
