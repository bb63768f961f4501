import copy

from orchsim.services.template import interpolate, stringify


REQUEST = {
    "body": {"name": "Ana", "age": 31, "vip": True, "score": 5.0, "tags": ["a", "b"]},
    "query": {"id": "42"},
}


def test_template_without_tokens_is_unchanged():
    template = {"id": 1, "name": "John Doe", "nested": {"ok": True, "items": [1, 2]}}
    assert interpolate(template, REQUEST) == template
    assert interpolate(interpolate(template, REQUEST), REQUEST) == template


def test_replaces_body_and_query_tokens():
    template = {"id": "{{request.query.id}}", "greeting": "Hi {{request.body.name}}!"}
    assert interpolate(template, REQUEST) == {"id": "42", "greeting": "Hi Ana!"}


def test_missing_field_renders_empty_string():
    template = {"x": "[{{request.body.missing}}]", "y": "{{request.query.nope}}"}
    assert interpolate(template, REQUEST) == {"x": "[]", "y": ""}


def test_scalars_are_stringified_like_json():
    template = {"age": "{{request.body.age}}", "vip": "{{request.body.vip}}",
                "score": "{{request.body.score}}", "tags": "{{request.body.tags}}"}
    assert interpolate(template, REQUEST) == {"age": "31", "vip": "true", "score": "5", "tags": "a,b"}


def test_recurses_into_nested_objects():
    template = {"customer": {"profile": {"name": "{{request.body.name}}"}}}
    assert interpolate(template, REQUEST) == {"customer": {"profile": {"name": "Ana"}}}


def test_arrays_and_scalars_pass_through():
    template = {"list": ["{{request.body.name}}"], "n": 3, "flag": False, "nothing": None}
    out = interpolate(template, REQUEST)
    assert out["list"] == ["{{request.body.name}}"]
    assert out["n"] == 3 and out["flag"] is False and out["nothing"] is None


def test_template_is_not_mutated_across_calls():
    template = {"id": "{{request.query.id}}", "inner": {"name": "{{request.body.name}}"}}
    original = copy.deepcopy(template)

    first = interpolate(template, REQUEST)
    second = interpolate(template, {"body": {"name": "Bia"}, "query": {"id": "7"}})

    assert template == original
    assert first == {"id": "42", "inner": {"name": "Ana"}}
    assert second == {"id": "7", "inner": {"name": "Bia"}}


def test_stringify_none_is_empty():
    assert stringify(None) == ""
    assert stringify(1.5) == "1.5"


def test_array_fields_join_like_string_conversion():
    assert stringify(["a", None, 2.0, True]) == "a,,2,true"
    assert stringify([["x", "y"], "z"]) == "x,y,z"
    assert stringify({"k": [1, 2]}) == '{"k":[1,2]}'
