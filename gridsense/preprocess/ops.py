import cv2
import numpy as np

from .base import PreprocessOp

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class Rotate(PreprocessOp):
    """
    顺时针旋转（手机竖屏相机常用 90）。
    params:
      - angle: 0 / 90 / 180 / 270
    """
    def __call__(self, image):
        angle = int(self.params.get("angle", 90)) % 360
        if angle == 0:
            return image
        if angle not in _ROTATIONS:
            raise ValueError(f"Rotate 仅支持 90 的倍数，实际 {angle}")
        return cv2.rotate(image, _ROTATIONS[angle])


class Resize(PreprocessOp):
    """缩放到网络输入尺寸。params: width, height"""
    def __call__(self, image):
        w = int(self.params.get("width", 416))
        h = int(self.params.get("height", 416))
        if image.shape[1] == w and image.shape[0] == h:
            return image
        return cv2.resize(image, (w, h), interpolation=cv2.INTER_LINEAR)


class BGR2RGB(PreprocessOp):
    def __call__(self, image):
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


class Normalize(PreprocessOp):
    """
    (x - mean) / std，输出 float32。
    params:
      - mean: float (默认 128)
      - std: float (默认 128)
    """
    def __call__(self, image):
        mean = float(self.params.get("mean", 128.0))
        std = float(self.params.get("std", 128.0))
        return (image.astype(np.float32) - mean) / std
