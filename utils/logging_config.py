import logging
from typing import Dict, Optional

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_level=logging.INFO, module_levels: Optional[Dict[str, int]] = None):
    """
    配置统一的控制台日志

    Args:
        log_level: 根日志级别，默认为INFO
        module_levels: 按模块覆盖日志级别，例如 {"core.graph.batch": logging.DEBUG}
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 清除现有的处理器
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # 只添加控制台处理器到根日志器
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(_FORMAT))
    root_logger.addHandler(console_handler)

    # 为特定模块设置不同的日志级别
    for module_name, level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(level)

    return logging.getLogger(__name__)


def get_logger(name):
    """
    获取配置好的logger实例

    Args:
        name: logger名称，通常是__name__
    """
    return logging.getLogger(name)
