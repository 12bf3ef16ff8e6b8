from typing import Dict, Type

from .base import PreprocessOp
from .ops import BGR2RGB, Normalize, Resize, Rotate

REGISTRY: Dict[str, Type[PreprocessOp]] = {
    "Rotate": Rotate,
    "Resize": Resize,
    "BGR2RGB": BGR2RGB,
    "Normalize": Normalize,
}


def get_op_class(name: str) -> Type[PreprocessOp]:
    if name not in REGISTRY:
        raise KeyError(f"Preprocess op '{name}' not found. Available: {list(REGISTRY.keys())}")
    return REGISTRY[name]
