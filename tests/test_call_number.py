import pytest

from stall.core.call_number import transform_call_number


@pytest.mark.parametrize("raw,expected", [(0, 201), (1, 202), (99, 300), (100, 201), (250, 251), (10_099, 300)])
def test_call_numbers_recycle_through_201_to_300(raw, expected):
    assert transform_call_number(raw) == expected
