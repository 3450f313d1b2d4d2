"""文件大小解析

日志文件大小等配置项使用 "10MB"、"1.5G"、"512 kb" 这类写法。

使用示例:
    from yexam.utils import parse_file_size

    parse_file_size("10MB")   # 10485760
    parse_file_size(4096)     # 4096
"""

import re
from typing import Union

UNIT_BYTES = {
    "": 1,
    "B": 1,
    "BYTE": 1,
    "BYTES": 1,
    "K": 1024,
    "KB": 1024,
    "M": 1024 ** 2,
    "MB": 1024 ** 2,
    "G": 1024 ** 3,
    "GB": 1024 ** 3,
    "T": 1024 ** 4,
    "TB": 1024 ** 4,
}

_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)\s*([A-Z]*)$")


def parse_file_size(value: Union[str, int, float]) -> int:
    """解析文件大小为字节数

    Args:
        value: 字节数，或带单位的字符串（B/KB/MB/GB/TB 及 K/M/G/T、BYTES 简写，不区分大小写）

    Raises:
        ValueError: 空字符串、未知单位或数字部分无效
    """
    if isinstance(value, (int, float)):
        return int(value)

    text = str(value).strip().upper()
    if not text:
        raise ValueError("文件大小字符串不能为空")

    match = _SIZE_PATTERN.match(text)
    if match is None or match.group(2) not in UNIT_BYTES:
        raise ValueError(f"无法解析文件大小: {value}")
    return int(float(match.group(1)) * UNIT_BYTES[match.group(2)])
