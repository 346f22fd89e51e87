"""
智能文本提取 - 核心模块

模块结构：
- config/     运行期配置、提示词、日志
- models/     数据模型定义
- render/     PDF解析/页面光栅化/图片读取
- services/   远端提取与摘要后端（Gemini）
- pipeline/   任务状态机、监管、进度、导出
- cli         命令行入口
"""

__version__ = "0.1.0"
