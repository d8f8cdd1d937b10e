from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TextIO, Tuple

from procflow.core.errors import ValidationError


MISSING_INPUT = "Missing input. Try again..."


@dataclass(frozen=True)
class VariableField:
    """
    Describes one value an install script needs from the operator.

    - force_input: always ask, offering the current value as the default
    - null_acceptable: an empty answer is allowed (returned as None)
    """

    name: str
    default: Optional[str] = None
    force_input: bool = False
    null_acceptable: bool = False


def _ask(text: str, input_fn: Callable[[str], str], out: TextIO) -> Tuple[str, bool]:
    """
    Returns (stripped answer, end_of_input). End of input reads as an empty answer.
    """
    out.write(text)
    out.flush()
    try:
        return input_fn("").strip(), False
    except EOFError:
        out.write("\n")
        return "", True


def prompt_for_value(
    field: VariableField,
    environ: Optional[Mapping[str, str]] = None,
    *,
    input_fn: Callable[[str], str] = input,
    output: Optional[TextIO] = None,
) -> Optional[str]:
    env = os.environ if environ is None else environ
    out = output if output is not None else sys.stdout
    from_env = env.get(field.name) or None
    current = from_env or field.default or None
    source = "ENV" if from_env else "default"

    while True:
        eof = False
        if field.force_input:
            if current:
                answer, eof = _ask(f"Enter {field.name} [{current}]: ", input_fn, out)
                value = answer or current
            else:
                value, eof = _ask(f"Enter {field.name}: ", input_fn, out)
        elif current:
            out.write(f"* Using value from {source} for {field.name} - {current}\n")
            value = current
        else:
            value, eof = _ask(f"Enter {field.name}: ", input_fn, out)

        if value:
            return value
        if field.null_acceptable:
            return None
        if eof:
            # Asking again would read end of input forever.
            raise ValidationError(
                code="prompt.no_input",
                message=f"No value for {field.name}: input ended",
                data={"variable": field.name},
            )
        out.write(MISSING_INPUT + "\n")
