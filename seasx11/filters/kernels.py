"""Kernel weights for moving-average smoothing.

Every filter family is a frozen dataclass variant carrying exactly the
parameters it needs. ``weights()`` returns an odd-length vector normalized to
sum to one that can be used with ``weighted_mean``. Several spans given to the
same family are convolved (``MovingAverage((3, 3))`` is the 3x3 seasonal
moving average with weights 1, 2, 3, 2, 1 over 9).
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple, Union
import logging
import math

import numpy as np

from seasx11.utils.error_handling import KernelConfigurationError

logger = logging.getLogger(__name__)

Spans = Union[float, Iterable[float]]

FINITE_KERNELS = (
    "triangle", "epanechnikov", "biweight", "triweight",
    "tricube", "cosine", "optcosine", "cauchy",
)

# Default vector lengths keep every weight above roughly 1e-15.
INFINITE_KERNELS: Dict[str, float] = {
    "logistic": 71.0,
    "sigmoid": 71.0,
    "gaussian": 19.0,
    "exponential": 135.0,
    "silverman": 98.0,
}


def _as_spans(spans: Spans, family: str) -> Tuple[float, ...]:
    if isinstance(spans, (int, float, np.integer, np.floating)):
        spans = (spans,)
    spans = tuple(float(s) for s in spans)
    if not spans:
        raise KernelConfigurationError(f"'{family}' requires at least one span")
    for s in spans:
        if not np.isfinite(s) or s <= 0:
            raise KernelConfigurationError(
                f"'{family}' spans must be positive, got {s}"
            )
    return spans


def _compose(parts: Iterable[np.ndarray]) -> np.ndarray:
    """Convolve the partial kernels, renormalizing after each step."""
    w = np.ones(1)
    for part in parts:
        w = np.convolve(w, np.asarray(part, dtype=float))
        w = w / w.sum()
    return w


def _symmetric_grid(bandwidth: float) -> np.ndarray:
    laglead = math.ceil((bandwidth - 1) / 2)
    return np.arange(-laglead, laglead + 1) / ((bandwidth - 1) / 2)


@dataclass(frozen=True)
class KernelSpec:
    """Base class of the kernel family variants."""

    @property
    def family(self) -> str:
        return type(self).__name__

    def weights(self) -> np.ndarray:
        raise NotImplementedError


@dataclass(frozen=True)
class MovingAverage(KernelSpec):
    """Simple moving average of ``ceil(span)`` terms."""
    spans: Tuple[float, ...] = (3.0,)

    def __post_init__(self):
        object.__setattr__(self, "spans", _as_spans(self.spans, "ma"))

    def weights(self) -> np.ndarray:
        return _compose(np.ones(math.ceil(s)) for s in self.spans)


@dataclass(frozen=True)
class CenteredMovingAverage(KernelSpec):
    """
    Centered moving average from minus span/2 lags to plus span/2 leads.

    An even span gets an odd number of terms with half weights on both ends,
    so ``CenteredMovingAverage(12)`` is the classical 2x12 moving average.
    """
    spans: Tuple[float, ...] = (12.0,)

    def __post_init__(self):
        object.__setattr__(self, "spans", _as_spans(self.spans, "cma"))

    def weights(self) -> np.ndarray:
        parts = []
        for span in self.spans:
            oddn = math.ceil((span - 1) / 2) * 2 + 1
            w = np.ones(oddn)
            w[[0, -1]] = 1 - (oddn - span) / 2
            parts.append(w)
        return _compose(parts)


def rehomme_ladiray_weights(terms: int, degree: int = 3, henderson_weight: float = 0.5) -> np.ndarray:
    """
    Weights of the Rehomme-Ladiray moving average.

    Minimizes ``h * S + (1 - h) * B`` where S is the Henderson smoothness
    criterion (sum of squared third differences of the weights) and B the
    Bongard criterion (sum of squared weights), subject to reproducing
    polynomials up to ``degree`` exactly.

    Args:
        terms: Number of terms, odd and at least 3
        degree: Degree of reproduced polynomials (rounded up to odd)
        henderson_weight: Weight h of the Henderson criterion

    Returns:
        Symmetric weight vector of length ``terms``
    """
    if terms != int(terms) or terms < 3 or int(terms) % 2 != 1:
        raise KernelConfigurationError(
            f"Rehomme-Ladiray filters need an odd number of terms >= 3, got {terms}"
        )
    terms = int(terms)
    if degree != int(degree) or degree < 1 or degree > terms:
        raise KernelConfigurationError(
            f"degree must be a positive integer not exceeding the number of "
            f"terms, got degree={degree}, terms={terms}"
        )
    degree = int(degree)
    degree += (degree + 1) % 2
    if not 0.0 <= henderson_weight <= 1.0:
        logger.warning(
            f"henderson_weight={henderson_weight} is outside [0, 1]; "
            f"the filter is computed anyway"
        )

    h = henderson_weight
    roughness = (
        20.0 * np.eye(terms)
        - 15.0 * (np.eye(terms, k=1) + np.eye(terms, k=-1))
        + 6.0 * (np.eye(terms, k=2) + np.eye(terms, k=-2))
        - 1.0 * (np.eye(terms, k=3) + np.eye(terms, k=-3))
    )
    A = (h * roughness + (1 - h) * np.eye(terms)) / (19 * h + 1)

    half = (terms - 1) // 2
    lags = np.arange(-half, half + 1, dtype=float)
    C = np.column_stack([lags ** k for k in range(0, degree, 2)])
    alpha = np.zeros(C.shape[1])
    alpha[0] = 1.0

    A_inv_C = np.linalg.solve(A, C)
    multiplier = -2.0 * np.linalg.solve(C.T @ A_inv_C, alpha)
    return -0.5 * A_inv_C @ multiplier


@dataclass(frozen=True)
class Henderson(KernelSpec):
    """Henderson trend filter (cubic-preserving, minimal roughness)."""
    terms: Tuple[int, ...] = (13,)

    def __post_init__(self):
        object.__setattr__(self, "terms", tuple(_as_spans(self.terms, "henderson")))

    def weights(self) -> np.ndarray:
        return _compose(rehomme_ladiray_weights(t, 3, 1.0) for t in self.terms)


@dataclass(frozen=True)
class Bongard(KernelSpec):
    """Bongard filter: cubic-preserving with minimal sum of squared weights."""
    terms: Tuple[int, ...] = (13,)

    def __post_init__(self):
        object.__setattr__(self, "terms", tuple(_as_spans(self.terms, "bongard")))

    def weights(self) -> np.ndarray:
        return _compose(rehomme_ladiray_weights(t, 3, 0.0) for t in self.terms)


@dataclass(frozen=True)
class RehommeLadiray(KernelSpec):
    """Convex combination of the Henderson and Bongard criteria."""
    terms: int = 13
    degree: int = 3
    henderson_weight: float = 0.5

    def weights(self) -> np.ndarray:
        return _compose([
            rehomme_ladiray_weights(self.terms, self.degree, self.henderson_weight)
        ])


@dataclass(frozen=True)
class Spencer(KernelSpec):
    """Spencer's 15-term moving average, convolved ``repeat`` times."""
    repeat: int = 1

    def __post_init__(self):
        if self.repeat != int(self.repeat) or self.repeat < 1:
            raise KernelConfigurationError(
                f"Spencer repeat count must be a positive integer, got {self.repeat}"
            )

    def weights(self) -> np.ndarray:
        # 5x4x4 triple moving average followed by a weighted MA(5)
        single = np.convolve(
            np.convolve([-3.0, 3.0, 4.0, 3.0, -3.0], np.ones(5)),
            np.convolve(np.ones(4), np.ones(4)),
        )
        return _compose([single] * int(self.repeat))


@dataclass(frozen=True)
class FiniteKernel(KernelSpec):
    """Kernel with finite support, one bandwidth per convolution step."""
    name: str = "epanechnikov"
    bandwidths: Tuple[float, ...] = (5.0,)

    def __post_init__(self):
        if self.name not in FINITE_KERNELS:
            raise KernelConfigurationError(
                f"Unknown finite-support kernel '{self.name}'. "
                f"Supported kernels are: {list(FINITE_KERNELS)}"
            )
        bandwidths = _as_spans(self.bandwidths, self.name)
        if any(b <= 1 for b in bandwidths):
            raise KernelConfigurationError(
                f"'{self.name}' bandwidths must exceed 1, got {bandwidths}"
            )
        object.__setattr__(self, "bandwidths", bandwidths)

    @property
    def family(self) -> str:
        return self.name

    def _single(self, bandwidth: float) -> np.ndarray:
        k = _symmetric_grid(bandwidth)
        if self.name == "triangle":
            w = 1 - np.abs(k)
        elif self.name == "epanechnikov":
            w = 1 - k ** 2
        elif self.name == "biweight":
            w = (1 - k ** 2) ** 2
        elif self.name == "triweight":
            w = (1 - k ** 2) ** 3
        elif self.name == "tricube":
            w = (1 - np.abs(k) ** 3) ** 3
        elif self.name == "cosine":
            w = 1 + np.cos(k * np.pi)
        elif self.name == "optcosine":
            w = np.cos(k * np.pi / 2)
        else:
            # cauchy has no zero crossing
            return 1 / (1 + k * k)
        # zero and negative weights lie outside the support
        return w[w > 1e-12]

    def weights(self) -> np.ndarray:
        return _compose(self._single(b) for b in self.bandwidths)


@dataclass(frozen=True)
class InfiniteKernel(KernelSpec):
    """
    Kernel with infinite support, truncated to ``length`` terms.

    Without an explicit length the vector is long enough to contain all
    weights that are at least about 1e-15.
    """
    name: str = "gaussian"
    bandwidth: float = 1.0
    length: Optional[int] = None

    def __post_init__(self):
        if self.name not in INFINITE_KERNELS:
            raise KernelConfigurationError(
                f"Unknown infinite-support kernel '{self.name}'. "
                f"Supported kernels are: {list(INFINITE_KERNELS)}"
            )
        _as_spans(self.bandwidth, self.name)
        if self.length is not None and (self.length != int(self.length) or self.length < 1):
            raise KernelConfigurationError(
                f"'{self.name}' length must be a positive integer, got {self.length}"
            )

    @property
    def family(self) -> str:
        return self.name

    def weights(self) -> np.ndarray:
        length = self.length
        if length is None:
            length = math.ceil(self.bandwidth * INFINITE_KERNELS[self.name])
        laglead = math.ceil((length - 1) / 2)
        k = np.arange(-laglead, laglead + 1) / self.bandwidth
        if self.name == "logistic":
            w = 1 / (np.exp(k) + np.exp(-k) + 2)
        elif self.name == "sigmoid":
            w = 2 / (np.exp(k) + np.exp(-k))
        elif self.name == "gaussian":
            w = np.exp(-np.abs(k) ** 2 / 2)
        elif self.name == "exponential":
            w = np.exp(-np.abs(k) / 2)
        else:
            s2 = np.sqrt(2) / 2
            w = np.exp(-np.abs(k) * s2) * np.cos(-np.abs(k) * s2)
        return _compose([w])


# name -> canonical family
KERNEL_ALIASES: Dict[str, str] = {
    "ma": "ma",
    "moving average": "ma",
    "cma": "cma",
    "centered moving average": "cma",
    "uniform": "cma",
    "rectangular": "cma",
    "rectangle": "cma",
    "box": "cma",
    "henderson": "henderson",
    "bongard": "bongard",
    "rehomme-ladiray": "rehomme-ladiray",
    "spencer": "spencer",
    "spencer15": "spencer",
    "triangle": "triangle",
    "triangular": "triangle",
    "epanechnikov": "epanechnikov",
    "biweight": "biweight",
    "quartic": "biweight",
    "triweight": "triweight",
    "tricube": "tricube",
    "cosine": "cosine",
    "optcosine": "optcosine",
    "cauchy": "cauchy",
    "logistic": "logistic",
    "sigmoid": "sigmoid",
    "gaussian": "gaussian",
    "normal": "gaussian",
    "exponential": "exponential",
    "silverman": "silverman",
}


def resolve_name(name: str, aliases: Dict[str, str]) -> Optional[str]:
    """Match a family name exactly, or by a unique prefix."""
    key = name.strip().lower()
    if key in aliases:
        return aliases[key]
    candidates = {family for alias, family in aliases.items() if alias.startswith(key)}
    if len(candidates) == 1:
        return candidates.pop()
    return None


def kernel_from_name(name: str, *params: float) -> KernelSpec:
    """
    Build a kernel variant from a family name and its numeric parameters.

    Args:
        name: Family name, alias, or unique prefix (e.g. 'epanech')
        *params: Numeric parameters of the family

    Returns:
        KernelSpec variant

    Raises:
        KernelConfigurationError: Unknown family, missing or surplus parameters
    """
    family = resolve_name(name, KERNEL_ALIASES)
    if family is None:
        raise KernelConfigurationError(f"Unknown kernel family: '{name}'")

    flat = []
    for p in params:
        if isinstance(p, (list, tuple, np.ndarray)):
            flat.extend(float(v) for v in np.ravel(p))
        else:
            flat.append(float(p))

    if family == "spencer":
        if len(flat) > 1:
            raise KernelConfigurationError(
                "'spencer' takes at most one parameter (the repeat count)"
            )
        return Spencer(int(flat[0]) if flat else 1)

    if not flat:
        raise KernelConfigurationError(f"'{name}' requires at least one parameter")

    if family == "ma":
        return MovingAverage(tuple(flat))
    if family == "cma":
        return CenteredMovingAverage(tuple(flat))
    if family == "henderson":
        return Henderson(tuple(flat))
    if family == "bongard":
        return Bongard(tuple(flat))
    if family == "rehomme-ladiray":
        if len(flat) > 3:
            raise KernelConfigurationError(
                "'rehomme-ladiray' takes terms, degree and henderson weight"
            )
        defaults = [13, 3, 0.5]
        terms, degree, h = flat + defaults[len(flat):]
        return RehommeLadiray(int(terms) if terms == int(terms) else terms, int(degree), h)
    if family in FINITE_KERNELS:
        return FiniteKernel(family, tuple(flat))
    if len(flat) > 2:
        raise KernelConfigurationError(
            f"'{family}' takes a bandwidth and an optional length"
        )
    length = int(flat[1]) if len(flat) == 2 else None
    return InfiniteKernel(family, flat[0], length)


def kernel_weights(kernel: Union[KernelSpec, str], *params: float) -> np.ndarray:
    """Weights of a kernel variant, or of a family name plus parameters."""
    if isinstance(kernel, str):
        kernel = kernel_from_name(kernel, *params)
    elif params:
        raise KernelConfigurationError(
            "Parameters are only accepted together with a family name"
        )
    return kernel.weights()


class KernelCache:
    """
    Explicit memo of computed kernel weights.

    Kernel variants are hashable, so they key the cache directly. Returned
    arrays are read-only and shared between callers.
    """

    def __init__(self):
        self._weights: Dict[KernelSpec, np.ndarray] = {}
        self.hits = 0
        self.misses = 0

    def get(self, kernel: KernelSpec) -> np.ndarray:
        """Return the cached weights of ``kernel``, computing them once."""
        cached = self._weights.get(kernel)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        w = kernel.weights()
        w.setflags(write=False)
        self._weights[kernel] = w
        return w

    def clear(self) -> None:
        self._weights.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._weights)
