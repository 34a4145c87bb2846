from __future__ import annotations

from dataclasses import dataclass, field

from sitebind.templating import (
    EachBlock,
    apply_mappings,
    expand_loops,
    parse_loops,
    resolve_direct_placeholders,
)


@dataclass
class Mapping:
    placeholder: str
    api_name: str
    json_path: str
    pages: list[str] = field(default_factory=list)


USERS = [{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bo"}]


def test_loop_over_array_renders_each_element_in_order() -> None:
    data = {"items": [{"x": 1}, {"x": 2}]}
    assert expand_loops("{{#each items}}<span>{{this.x}}</span>{{/each}}", data) == "<span>1</span><span>2</span>"


def test_loop_over_empty_array_renders_nothing() -> None:
    assert expand_loops("{{#each items}}<span>{{this.x}}</span>{{/each}}", {"items": []}) == ""


def test_loop_bare_and_this_fields_are_equivalent() -> None:
    text = "{{#each users}}[{{id}}:{{this.name}}|{{ name }}]{{/each}}"
    assert expand_loops(text, {"users": USERS}) == "[1:Ann|Ann][2:Bo|Bo]"


def test_loop_fields_resolve_against_element_not_outer_scope() -> None:
    data = {"users": [{"id": 1}], "name": "outer"}
    assert expand_loops("{{#each users}}<b>{{name}}</b>{{/each}}", data) == "<b></b>"


def test_loop_target_uses_dotted_path_into_data() -> None:
    data = {"api": {"payload": {"rows": [{"v": "a"}, {"v": "b"}]}}}
    assert expand_loops("{{#each   api.payload.rows }}{{v}}{{/each}}", data) == "ab"


def test_loop_with_non_array_target_disappears() -> None:
    text = "<ul>{{#each users}}<li>{{name}}</li>{{/each}}</ul>"
    assert expand_loops(text, {"users": {"name": "Ann"}}) == "<ul></ul>"
    assert expand_loops(text, {}) == "<ul></ul>"
    assert expand_loops(text, {"users": {"_error": "boom"}}) == "<ul></ul>"


def test_loop_close_marker_allows_whitespace() -> None:
    assert expand_loops("{{#each users}}{{id}}{{ /each }}", {"users": USERS}) == "12"


def test_loop_this_renders_scalar_elements() -> None:
    assert expand_loops("{{#each tags}}<i>{{this}}</i>{{/each}}", {"tags": ["a", "b"]}) == "<i>a</i><i>b</i>"


def test_loop_leaves_text_outside_block_untouched() -> None:
    text = "<h1>{{title}}</h1>{{#each users}}{{id}}{{/each}}<p>{{name}}</p>"
    assert expand_loops(text, {"users": USERS, "title": "T"}) == "<h1>{{title}}</h1>12<p>{{name}}</p>"


def test_loop_leaves_bare_dotted_tokens_for_outer_passes() -> None:
    text = "{{#each users}}{{meta.total}}{{/each}}"
    assert expand_loops(text, {"users": USERS}) == "{{meta.total}}{{meta.total}}"


def test_sibling_loops_expand_independently() -> None:
    text = "{{#each a}}{{v}}{{/each}}-{{#each b}}{{v}}{{/each}}"
    assert expand_loops(text, {"a": [{"v": 1}], "b": [{"v": 2}, {"v": 3}]}) == "1-23"


def test_nested_loops_resolve_inner_path_against_current_element() -> None:
    data = {
        "teams": [
            {"name": "red", "members": [{"n": "Ann"}, {"n": "Bo"}]},
            {"name": "blue", "members": [{"n": "Cy"}]},
        ]
    }
    text = "{{#each teams}}<h2>{{name}}</h2>{{#each this.members}}<i>{{n}}</i>{{/each}}{{/each}}"
    assert expand_loops(text, data) == "<h2>red</h2><i>Ann</i><i>Bo</i><h2>blue</h2><i>Cy</i>"


def test_parse_loops_builds_nested_tree() -> None:
    nodes = parse_loops("a{{#each x}}b{{#each y}}c{{/each}}{{/each}}d")
    assert nodes[0] == "a"
    outer = nodes[1]
    assert isinstance(outer, EachBlock)
    assert outer.path == "x"
    assert outer.children[0] == "b"
    inner = outer.children[1]
    assert isinstance(inner, EachBlock)
    assert inner.path == "y"
    assert inner.children == ["c"]
    assert nodes[2] == "d"


def test_unclosed_loop_marker_stays_literal() -> None:
    text = "<p>{{#each users}}<li>{{name}}</li></p>"
    assert expand_loops(text, {"users": USERS}) == text


def test_stray_close_marker_stays_literal() -> None:
    text = "<p>{{/each}}</p>"
    assert expand_loops(text, {}) == text


def test_mapping_substitutes_from_named_api() -> None:
    data = {"profile": {"user": {"name": "Ann"}}}
    mappings = [Mapping("userName", "profile", "user.name")]
    assert apply_mappings("<b>{{userName}}</b>", mappings, data=data, page_path="index.html") == "<b>Ann</b>"


def test_mapping_later_record_wins_for_same_placeholder() -> None:
    data = {"a": {"v": "first"}, "b": {"v": "second"}}
    mappings = [Mapping("P", "a", "v"), Mapping("P", "b", "v")]
    assert apply_mappings("{{P}} {{P}}", mappings, data=data, page_path="index.html") == "second second"


def test_mapping_page_filter() -> None:
    data = {"api": {"v": "x"}}
    scoped = [Mapping("P", "api", "v", pages=["a.html"])]
    global_ = [Mapping("P", "api", "v", pages=[])]

    assert apply_mappings("{{P}}", scoped, data=data, page_path="a.html") == "x"
    assert apply_mappings("{{P}}", scoped, data=data, page_path="b.html") == "{{P}}"
    assert apply_mappings("{{P}}", global_, data=data, page_path="b.html") == "x"


def test_mapping_stringifies_objects_and_blanks_missing_values() -> None:
    data = {"api": {"obj": {"k": 1}, "none": None}}
    mappings = [
        Mapping("obj", "api", "obj"),
        Mapping("none", "api", "none"),
        Mapping("gone", "api", "missing.path"),
        Mapping("noapi", "unknown", "v"),
    ]
    result = apply_mappings("{{obj}}|{{none}}|{{gone}}|{{noapi}}", mappings, data=data, page_path="i.html")
    assert result == '{"k":1}|||'


def test_mapping_values_are_not_reinterpreted_as_placeholders() -> None:
    data = {"api": {"a": "{{B}}", "b": "bee"}}
    mappings = [Mapping("A", "api", "a"), Mapping("B", "api", "b")]
    assert apply_mappings("{{A}}/{{B}}", mappings, data=data, page_path="i.html") == "{{B}}/bee"


def test_mapping_with_blank_placeholder_is_inert() -> None:
    data = {"api": {"v": "x"}}
    assert apply_mappings("{{}}", [Mapping("", "api", "v")], data=data, page_path="i.html") == "{{}}"


def test_direct_placeholders_resolve_against_root() -> None:
    data = {"users": USERS, "__meta__": {"users": {"status": 200}}}
    text = "<p>{{users.0.name}}</p><p>{{ users.1.id }}</p><i>{{__meta__.users.status}}</i>"
    assert resolve_direct_placeholders(text, data) == "<p>Ann</p><p>2</p><i>200</i>"


def test_direct_placeholders_missing_paths_become_empty() -> None:
    assert resolve_direct_placeholders("<p>{{users.0.name}}</p>{{nothing}}", {"users": {"_error": "x"}}) == "<p></p>"


def test_direct_placeholders_ignore_non_grammar_tokens() -> None:
    text = "{{#each x}} {{ a b }} {{}}"
    assert resolve_direct_placeholders(text, {}) == text


def test_direct_placeholder_pass_is_idempotent() -> None:
    data = {"site": {"title": "Demo"}}
    once = resolve_direct_placeholders("<h1>{{site.title}}</h1>{{missing}}", data)
    assert resolve_direct_placeholders(once, data) == once == "<h1>Demo</h1>"
