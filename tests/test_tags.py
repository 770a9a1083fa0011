import re

import pytest

from stackbuild.exceptions import ConfigurationError, TagCollisionError
from stackbuild.images import check_tag_collisions, image_tag, sanitize
from stackbuild.stack import ComputeUnit, Provider

_TAG_CHARS = re.compile(r"^[a-z0-9-]*$")


def function(name: str, tag: str | None = None) -> ComputeUnit:
    return ComputeUnit(name=name, handler="index.ts", tag=tag)


class TestSanitize:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("my-stack", "mystack"),
            ("My_Stack-01", "mystack01"),
            ("hello world!", "helloworld"),
            ("ÄPI.v2", "piv2"),
            ("already", "already"),
        ],
    )
    def test_sanitize(self, value, expected):
        assert sanitize(value) == expected


class TestImageTag:
    @pytest.mark.parametrize("provider", list(Provider))
    @pytest.mark.parametrize(
        "stack_name, unit_name",
        [
            ("My Stack", "Hello_World"),
            ("stack", "fn"),
            ("prod.EU-1", "orders/v2"),
            ("数据", "api"),
        ],
    )
    def test_default_rule(self, provider, stack_name, unit_name):
        tag = image_tag(stack_name, provider, function(unit_name))

        assert tag == f"{sanitize(stack_name)}-{sanitize(unit_name)}"
        assert tag == tag.lower()
        assert _TAG_CHARS.match(tag)

    @pytest.mark.parametrize("provider", list(Provider))
    def test_explicit_tag_used_verbatim(self, provider):
        unit = function("hello", tag="Registry.example.com/Team/Hello:1.0")

        assert image_tag("Any Stack", provider, unit) == (
            "Registry.example.com/Team/Hello:1.0"
        )

    def test_deterministic(self):
        unit = function("hello")
        assert image_tag("s", Provider.AWS, unit) == image_tag("s", Provider.AWS, unit)


class TestTagCollisions:
    def test_returns_tags_by_unit(self):
        tags = check_tag_collisions(
            "stack", Provider.LOCAL, [function("a"), function("b", tag="custom")]
        )
        assert tags == {"a": "stack-a", "b": "custom"}

    def test_units_sanitizing_identically_collide(self):
        with pytest.raises(TagCollisionError) as exc_info:
            check_tag_collisions(
                "stack", Provider.LOCAL, [function("my-fn"), function("my_fn")]
            )

        error = exc_info.value
        assert isinstance(error, ConfigurationError)
        assert error.tag == "stack-myfn"
        assert error.unit_names == ["my-fn", "my_fn"]

    def test_explicit_tag_can_collide_with_derived_tag(self):
        with pytest.raises(TagCollisionError):
            check_tag_collisions(
                "stack", Provider.LOCAL, [function("a"), function("b", tag="stack-a")]
            )
