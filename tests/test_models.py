"""Tests for attribute value typing."""
import pytest

from catalog.models.attribute import ProductAttribute, decode_value, encode_value, value_type


@pytest.mark.parametrize("value,tag,raw", [
    (True, "boolean", "true"),
    (False, "boolean", "false"),
    (3, "integer", "3"),
    (2.5, "float", "2.5"),
    ("Red", "string", "Red"),
])
def test_attribute_value_typing(value, tag, raw):
    assert value_type(value) == tag
    assert encode_value(value) == raw
    assert decode_value(raw, tag) == value


def test_set_value_retags():
    product_attribute = ProductAttribute()

    product_attribute.set_value(True)
    assert (product_attribute.value, product_attribute.type) == ("true", "boolean")

    product_attribute.set_value("42")
    assert (product_attribute.value, product_attribute.type) == ("42", "string")
    assert product_attribute.typed_value == "42"
