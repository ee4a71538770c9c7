"""
产品目录排版与导出系统 - 后端核心模块

模块结构：
- config/     运行期配置与目录设置加载
- models/     数据模型定义
- layout/     排版引擎（样式解析/水印/页面结构）
- export/     导出流水线（页码解析/离屏渲染/栅格化/组装）
- storage/    存储协作方适配（HTTP接口/Excel工作簿）
- cli.py      命令行入口
"""

__version__ = "0.1.0"
