"""批量图片压缩与缩放工具。"""

from image_optimizer.api import images, resize

__all__ = ["images", "resize"]
__version__ = "0.1.0"
