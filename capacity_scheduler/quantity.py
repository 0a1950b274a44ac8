# quantity.py

"""
Resource quantity normalization.

CPU is normalized to millicores and memory to memory units. Both the
usage side (container requests) and the allocatable side (node status)
go through these functions, so the two figures are always comparable.
"""

import re
from decimal import Decimal, ROUND_DOWN

from .exceptions import QuantityParseError
from .models import Container, Pod, Resources

CPU = "cpu"
MEMORY = "memory"

# Memory multipliers into memory units, keyed by suffix
GI_SCALE = 1000  # Observed scaling for Gi; not 1024, see DESIGN.md
BARE_SCALE = 1000
KI_DIVISOR = 1024

_INTEGER = re.compile(r"^\d+$")
_DECIMAL = re.compile(r"^(\d+\.?\d*|\.\d+)$")


def _parse_int(text: str, raw: str, resource: str) -> int:
    if not _INTEGER.match(text):
        raise QuantityParseError(raw, resource)
    return int(text)


def _parse_decimal(text: str, raw: str, resource: str) -> Decimal:
    if not _DECIMAL.match(text):
        raise QuantityParseError(raw, resource)
    return Decimal(text)


def _truncate(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def normalize_cpu(raw: str) -> int:
    """
    Normalize a CPU quantity to millicores.

    "250m" -> 250, "2" -> 2000, "0.5" -> 500. Fractional millicores are
    truncated.
    """
    if not isinstance(raw, str):
        raise QuantityParseError(raw, CPU)
    if raw.endswith("m"):
        return _parse_int(raw[:-1], raw, CPU)
    return _truncate(_parse_decimal(raw, raw, CPU) * 1000)


def normalize_memory(raw: str) -> int:
    """
    Normalize a memory quantity to memory units.

    "2048Ki" -> 2, "512Mi" -> 512, "2Gi" -> 2000, "64" -> 64000.
    Binary suffixes take whole numbers only, so "1.5Gi" is rejected.
    """
    if not isinstance(raw, str):
        raise QuantityParseError(raw, MEMORY)
    if raw.endswith("Ki"):
        return _parse_int(raw[:-2], raw, MEMORY) // KI_DIVISOR
    if raw.endswith("Gi"):
        return _parse_int(raw[:-2], raw, MEMORY) * GI_SCALE
    if raw.endswith("Mi"):
        return _parse_int(raw[:-2], raw, MEMORY)
    return _truncate(_parse_decimal(raw, raw, MEMORY) * BARE_SCALE)


def normalize_resources(quantities) -> Resources:
    """
    Normalize a {"cpu": ..., "memory": ...} mapping.

    An absent entry counts as zero; a present but malformed entry raises
    QuantityParseError.
    """
    cpu = quantities.get(CPU)
    memory = quantities.get(MEMORY)
    return Resources(
        cpu=0 if cpu is None else normalize_cpu(cpu),
        memory=0 if memory is None else normalize_memory(memory),
    )


def container_request(container: Container) -> Resources:
    return normalize_resources(container.requests)


def pod_request(pod: Pod) -> Resources:
    """Sum of the requests of every container in the pod."""
    return sum((container_request(c) for c in pod.containers), Resources())
