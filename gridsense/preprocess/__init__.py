from .base import PreprocessOp
from .pipeline import PreprocessPipeline
from .registry import get_op_class

__all__ = ["PreprocessOp", "PreprocessPipeline", "get_op_class"]
