"""
栅格化保真修正 - 仅作用于导出用的场景副本

高倍率栅格化时，交互分辨率下刚好放得下的文字会换行或被裁切，
因此捕获前对信息条文字做两项修正：
1. 文字容器的内边距/外边距清零
2. 文字字号乘以收缩系数，行高与字间距收紧

收缩系数是针对当前栅格化后端的经验校准值（ExportConfig.font_shrink_factor）。
交互预览永远不经过这里。
"""

from __future__ import annotations

from dataclasses import dataclass

from .surface import TEXT_CONTAINER_CLASS, TEXT_SPAN_CLASS, Scene


@dataclass(frozen=True)
class FidelityCorrection:
    """导出修正参数"""
    font_shrink_factor: float = 0.85
    line_height: float = 1.0
    letter_spacing: float = -0.2

    @classmethod
    def from_config(cls, export_config) -> FidelityCorrection:
        return cls(
            font_shrink_factor=export_config.font_shrink_factor,
            line_height=export_config.export_line_height,
            letter_spacing=export_config.export_letter_spacing_px,
        )

    def apply(self, scene: Scene) -> Scene:
        """就地修正场景副本并返回（调用方负责传入副本）"""
        for node in scene.with_class(TEXT_CONTAINER_CLASS):
            node.style["padding_x"] = 0.0
            node.style["padding_y"] = 0.0
            node.style["margin"] = 0.0

        for node in scene.with_class(TEXT_SPAN_CLASS):
            node.style["font_size"] = node.style.get("font_size", 10) * self.font_shrink_factor
            node.style["line_height"] = self.line_height
            node.style["letter_spacing"] = self.letter_spacing

        return scene
