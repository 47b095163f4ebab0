"""
Activation log markers.

The orchestrator collecting an action's logs splits them per activation
on a fixed sentinel line. It is written once at the end of every run
request, whatever the outcome.
"""

from __future__ import annotations

import sys
from typing import TextIO

ACTIVATION_SENTINEL = "XXX_THE_END_OF_A_WHISK_ACTIVATION_XXX"


class ActivationLog:
    """
    Writes the end-of-activation sentinel.

    Streams are looked up at write time so redirected ``sys.stderr`` /
    ``sys.stdout`` are honoured.

    Args:
        include_stdout: Also mark the end of the activation on stdout
    """

    def __init__(self, include_stdout: bool = False):
        self.include_stdout = include_stdout

    def _streams(self) -> list[TextIO]:
        streams = [sys.stderr]
        if self.include_stdout:
            streams.append(sys.stdout)
        return streams

    def end_activation(self) -> None:
        for stream in self._streams():
            stream.write(ACTIVATION_SENTINEL + "\n")
            stream.flush()
