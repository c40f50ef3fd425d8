from __future__ import annotations

from typing import Any, TypeAlias

import numpy as np
import numpy.typing as npt

NDArrayComplex: TypeAlias = npt.NDArray[np.complexfloating[Any, Any]]

# Launch extents along one to three axes.
Extent: TypeAlias = tuple[int, ...]
