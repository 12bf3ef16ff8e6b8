from typing import Any, Dict

import numpy as np

from .registry import get_op_class


class PreprocessPipeline:
    """
    可插拔预处理流水线：
    - 根据 config 构建算子链
    - __call__(image) -> 归一化后的网络输入
    """
    def __init__(self, config: Dict[str, Any]):
        config = config or {}
        self.enabled = bool(config.get("enabled", True))
        self.chain_cfg = config.get("chain", []) or []
        self.ops = []
        for node in self.chain_cfg:
            name = node.get("name")
            params = node.get("params", {}) or {}
            cls = get_op_class(name)
            self.ops.append(cls(**params))

    def __call__(self, image: np.ndarray) -> np.ndarray:
        if not self.enabled or not self.ops:
            return image
        out = image
        for op in self.ops:
            out = op(out)
        return out
