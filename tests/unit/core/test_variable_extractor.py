"""变量提取单元测试."""

from placard.core.variable_extractor import (
    detect_placeholder,
    extract_variables,
    seed_bindings,
)
from placard.models.scene_document import (
    Binding,
    GroupElement,
    ImageElement,
    RectangleElement,
    SceneDocument,
    TextElement,
)


def _bound_text(name: str, **kwargs) -> TextElement:
    return TextElement(binding=Binding(variable_name=name), **kwargs)


class TestExtractVariables:
    """测试变量提取."""

    def test_empty_document(self):
        """测试空文档."""
        assert extract_variables(SceneDocument(width=10, height=10)) == []

    def test_no_bindings(self):
        """测试无绑定元素."""
        doc = SceneDocument(width=10, height=10, elements=[RectangleElement(), TextElement()])
        assert extract_variables(doc) == []

    def test_first_seen_order_and_dedupe(self):
        """测试按首次出现顺序去重."""
        doc = SceneDocument(
            width=10,
            height=10,
            elements=[
                _bound_text("title"),
                ImageElement(src="a.png", binding=Binding(variable_name="photo")),
                _bound_text("title"),
                _bound_text("price"),
            ],
        )
        assert extract_variables(doc) == ["title", "photo", "price"]

    def test_group_children(self):
        """测试编组内部元素."""
        doc = SceneDocument(
            width=10,
            height=10,
            elements=[
                GroupElement(elements=[_bound_text("inner"), GroupElement(elements=[_bound_text("deep")])]),
                _bound_text("outer"),
            ],
        )
        assert extract_variables(doc) == ["inner", "deep", "outer"]

    def test_non_dynamic_ignored(self):
        """测试非动态绑定不计入."""
        doc = SceneDocument(
            width=10,
            height=10,
            elements=[TextElement(binding=Binding(variable_name="x", is_dynamic=False))],
        )
        assert extract_variables(doc) == []

    def test_placeholder_without_binding_ignored(self):
        """测试只有占位文字、没有绑定时不计入."""
        doc = SceneDocument(width=10, height=10, elements=[TextElement(content="{{name}}")])
        assert extract_variables(doc) == []

    def test_idempotent(self):
        """测试重复提取结果一致."""
        doc = SceneDocument(width=10, height=10, elements=[_bound_text("a"), _bound_text("b")])
        assert extract_variables(doc) == extract_variables(doc)


class TestPlaceholder:
    """测试占位符检测."""

    def test_detect(self):
        """测试检测第一个占位符."""
        assert detect_placeholder("Hello {{ name }}, from {{city}}") == "name"

    def test_none(self):
        """测试无占位符或空占位符."""
        assert detect_placeholder("plain") is None
        assert detect_placeholder("{{  }}") is None
        assert detect_placeholder("") is None


class TestSeedBindings:
    """测试绑定初始化."""

    def test_seeds_unbound_text(self):
        """测试为无绑定文字初始化绑定."""
        doc = SceneDocument(width=10, height=10, elements=[TextElement(id="t", content="{{headline}}")])

        seeded = seed_bindings(doc)

        assert seeded.elements[0].variable_name == "headline"
        assert doc.elements[0].binding is None

    def test_existing_binding_wins(self):
        """测试已有绑定保持不变."""
        doc = SceneDocument(
            width=10,
            height=10,
            elements=[TextElement(content="{{other}}", binding=Binding(variable_name="explicit"))],
        )
        assert extract_variables(seed_bindings(doc)) == ["explicit"]

    def test_seeds_inside_groups(self):
        """测试编组内文字."""
        doc = SceneDocument(
            width=10,
            height=10,
            elements=[GroupElement(elements=[TextElement(content="Hi {{name}}")])],
        )
        assert extract_variables(seed_bindings(doc)) == ["name"]
