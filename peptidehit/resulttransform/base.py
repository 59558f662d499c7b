"""Abstract classes for the result transformations."""

import logging
import typing

logger = logging.getLogger()


class ProcessingStep:
    def __init__(self) -> None:
        """Base class for processing steps. Each implementation must implement the `validate` and `forward` method.
        Steps are called once per scan group or once for the whole retained result list.
        """

    def __call__(self, *args: typing.Any) -> typing.Any:
        """Run the processing step on the input object."""
        logger.debug(f"Running {self.__class__.__name__}")
        if self.validate(*args):
            return self.forward(*args)
        logger.critical(f"Input failed validation for {self.__class__.__name__}")
        raise ValueError(f"Input failed validation for {self.__class__.__name__}")

    def validate(self, *args: typing.Any) -> bool:
        """Validate the input object."""
        raise NotImplementedError("Subclasses must implement this method")

    def forward(self, *args: typing.Any) -> typing.Any:
        """Run the processing step on the input object."""
        raise NotImplementedError("Subclasses must implement this method")
