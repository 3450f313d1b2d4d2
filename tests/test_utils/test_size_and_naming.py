"""工具函数测试"""

import pytest

from yexam.utils import parse_file_size, to_snake_case


class TestParseFileSize:
    """文件大小解析测试"""

    @pytest.mark.parametrize("value, expected", [
        ("10MB", 10 * 1024 * 1024),
        ("512kb", 512 * 1024),
        ("1.5GB", int(1.5 * 1024 ** 3)),
        ("2M", 2 * 1024 * 1024),
        ("100", 100),
        (2048, 2048),
        ("10 bytes", 10),
    ])
    def test_parse(self, value, expected):
        assert parse_file_size(value) == expected

    @pytest.mark.parametrize("value", ["", "abcMB", "MB", "ten"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_file_size(value)


class TestToSnakeCase:
    """命名转换测试"""

    def test_convert(self):
        assert to_snake_case("Category") == "category"
        assert to_snake_case("CategoryClosure") == "category_closure"
        assert to_snake_case("APIClient") == "api_client"
