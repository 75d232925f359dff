# tests/unit/engine/test_expressions.py
"""Tests for the {{ ... }} expression tokenizer, parser and resolver."""

from datetime import UTC, datetime

import pytest

from nodeflow.contracts import ErrorKind, ExpressionSyntaxError
from nodeflow.engine.clock import MockClock
from nodeflow.engine.expressions import (
    UNRESOLVED,
    DataContext,
    extract_references,
    interpolate,
    parse_expression,
    parse_template,
    referenced_nodes,
    render,
    resolve,
    resolve_detailed,
    split_spans,
    tokenize,
)


@pytest.fixture
def context() -> DataContext:
    return DataContext(
        trigger={"json": {"firstName": "John", "lastName": "Doe", "items": [{"sku": "A1"}, {"sku": "B2"}], "n": 3}},
        nodes={"node_1": {"status": 200, "body": {"id": "r-9"}}},
        env={"API_BASE": "https://api.example.com"},
        variables={"region": "eu"},
        execution_id="exec-1",
        workflow_id="wf-1",
        node_names={"Fetch Order": "node_1"},
        clock=MockClock(datetime(2024, 3, 1, 9, 30, tzinfo=UTC)),
    )


class TestTokenizer:
    def test_tokens(self) -> None:
        from nodeflow.engine.expressions import TokenKind

        kinds = [t.kind for t in tokenize('$node["Step"].json.items[0]')]
        assert kinds == [
            TokenKind.NAME,
            TokenKind.LBRACKET,
            TokenKind.STRING,
            TokenKind.RBRACKET,
            TokenKind.DOT,
            TokenKind.NAME,
            TokenKind.DOT,
            TokenKind.NAME,
            TokenKind.LBRACKET,
            TokenKind.INT,
            TokenKind.RBRACKET,
            TokenKind.END,
        ]

    def test_only_ascii_digits_form_integers(self) -> None:
        from nodeflow.engine.expressions import TokenKind

        token = tokenize("items.²")[2]
        assert (token.kind, token.value) == (TokenKind.NAME, "²")
        assert tokenize("items.12")[2].value == 12

    def test_string_escapes(self) -> None:
        token = tokenize(r'"say \"hi\""')[0]
        assert token.value == 'say "hi"'

    def test_unterminated_string(self) -> None:
        with pytest.raises(ExpressionSyntaxError, match="Unterminated string") as exc_info:
            tokenize('$node["Step')
        assert exc_info.value.position == 6

    def test_unexpected_character(self) -> None:
        with pytest.raises(ExpressionSyntaxError, match="Unexpected character"):
            tokenize("$json.a + 1")


class TestParser:
    def test_dotted_path(self) -> None:
        expr = parse_expression(" $json.customer.email ")
        assert expr.root == "$json"
        assert expr.path == ("customer", "email")
        assert expr.source == "$json.customer.email"

    def test_index_and_string_keys(self) -> None:
        expr = parse_expression("$json.items[0]['unit price'].amount")
        assert expr.path == ("items", 0, "unit price", "amount")

    def test_node_by_name(self) -> None:
        expr = parse_expression('$node["Fetch Order"].json.body')
        assert expr.root == "$node"
        assert expr.path == ("Fetch Order", "json", "body")

    def test_hyphenated_names(self) -> None:
        assert parse_expression("$json.x-request-id").path == ("x-request-id",)

    @pytest.mark.parametrize(
        "source",
        ["", "   ", ".a", "$json.", "$json[", "$json[0", "$node.json", "$json..a", '"str"', "$json.a ]"],
    )
    def test_malformed(self, source: str) -> None:
        with pytest.raises(ExpressionSyntaxError):
            parse_expression(source)


class TestTemplateScanning:
    def test_split_spans(self) -> None:
        assert split_spans("a {{ x }} b {{y}}") == [(2, 9), (12, 17)]

    def test_closing_braces_inside_quotes_are_ignored(self) -> None:
        template = '{{ $json["a}}b"] }}'
        assert split_spans(template) == [(0, len(template))]

    def test_unterminated_open_is_literal(self) -> None:
        assert split_spans("cost: {{ $json.price") == []
        assert resolve("cost: {{ $json.price", DataContext()) == "cost: {{ $json.price"

    def test_parse_template_parts(self) -> None:
        from nodeflow.engine.expressions import ExpressionSpan, Literal

        parts = parse_template("Hi {{ $json.name }}!")
        assert isinstance(parts[0], Literal)
        assert isinstance(parts[1], ExpressionSpan)
        assert parts[1].raw == "{{ $json.name }}"
        assert parts[2] == Literal("!")

    def test_malformed_span_raises(self) -> None:
        with pytest.raises(ExpressionSyntaxError):
            parse_template("{{ $json. }}")


class TestResolution:
    def test_first_and_last_name(self) -> None:
        context = DataContext(trigger={"json": {"firstName": "John", "lastName": "Doe"}})
        assert resolve("{{$json.firstName}} {{$json.lastName}}", context) == "John Doe"

    def test_lone_expression_returns_raw_value(self, context: DataContext) -> None:
        assert resolve("{{ $json.items }}", context) == [{"sku": "A1"}, {"sku": "B2"}]
        assert resolve("{{ $json.n }}", context) == 3

    def test_mixed_template_renders_values(self, context: DataContext) -> None:
        assert resolve("n={{ $json.n }} first={{ $json.items[0] }}", context) == 'n=3 first={"sku":"A1"}'

    def test_roots(self, context: DataContext) -> None:
        assert resolve("{{ trigger.json.firstName }}", context) == "John"
        assert resolve("{{ nodes.node_1.body.id }}", context) == "r-9"
        assert resolve('{{ $node["Fetch Order"].json.status }}', context) == 200
        assert resolve('{{ $node["node_1"].status }}', context) == 200
        assert resolve("{{ $env.API_BASE }}/v1", context) == "https://api.example.com/v1"
        assert resolve("{{ variables.region }}", context) == "eu"
        assert resolve("{{ $executionId }}:{{ $workflowId }}", context) == "exec-1:wf-1"

    def test_input_overrides_trigger_for_json(self, context: DataContext) -> None:
        from dataclasses import replace

        step = replace(context, input={"firstName": "Ann"})
        assert resolve("{{ $json.firstName }}", step) == "Ann"

    def test_json_falls_back_to_bare_trigger(self) -> None:
        assert resolve("{{ $json.id }}", DataContext(trigger={"id": 7})) == 7

    def test_now_reads_clock_every_time(self) -> None:
        clock = MockClock(datetime(2024, 3, 1, 9, 30, tzinfo=UTC))
        context = DataContext(clock=clock)

        assert resolve("{{ $now }}", context) == "2024-03-01T09:30:00+00:00"
        clock.advance(60)
        assert resolve("{{ $now }}", context) == "2024-03-01T09:31:00+00:00"
        assert resolve("{{ $today }}", context) == "2024-03-01"

    def test_random_id_is_fresh_per_call(self) -> None:
        counter = iter(range(100))
        context = DataContext(random=lambda: f"id-{next(counter)}")
        assert resolve("{{ $randomId }}", context) == "id-0"
        assert resolve("{{ $randomId }}", context) == "id-1"

    @pytest.mark.parametrize(
        "template",
        [
            "{{ $json.missing }}",
            "{{ $json.items[5] }}",
            "{{ $json.firstName.length }}",
            "{{ nodes.unknown.x }}",
            '{{ $node["Nope"].json }}',
            "{{ $env.UNSET }}",
            "{{ $now.year }}",
            "{{ mystery.root }}",
            '{{ $json.items["²"] }}',
            "{{ $json.items.² }}",
            "{{ $json.² }}",
        ],
    )
    def test_unresolvable_paths_give_sentinel(self, context: DataContext, template: str) -> None:
        assert resolve(template, context) is UNRESOLVED

    def test_unresolved_spans_keep_raw_text(self, context: DataContext) -> None:
        resolution = resolve_detailed("Hi {{ $json.firstName }} {{ $json.nickname }}", context)
        assert resolution.value == "Hi John {{ $json.nickname }}"
        assert resolution.unresolved == ("{{ $json.nickname }}",)
        assert not resolution.complete
        assert resolution.error_kind == ErrorKind.UNRESOLVED_EXPRESSION

    def test_run_time_mode_drops_unresolved(self, context: DataContext) -> None:
        assert resolve_detailed("a{{ $json.x }}b", context, keep_unresolved=False).value == "ab"
        assert resolve_detailed("{{ $json.x }}", context, keep_unresolved=False).value is None

    def test_null_value_is_resolved(self) -> None:
        context = DataContext(trigger={"json": {"note": None}})
        resolution = resolve_detailed("[{{ $json.note }}]", context)
        assert resolution.value == "[]"
        assert resolution.complete

    def test_non_string_values_pass_through(self, context: DataContext) -> None:
        assert resolve(42, context) == 42
        assert resolve("plain text", context) == "plain text"

    def test_sentinel_is_falsy_and_copy_safe(self) -> None:
        import copy

        assert not UNRESOLVED
        assert copy.deepcopy(UNRESOLVED) is UNRESOLVED
        assert repr(UNRESOLVED) == "UNRESOLVED"


class TestRender:
    @pytest.mark.parametrize(
        ("value", "text"),
        [
            (None, ""),
            (True, "true"),
            (3.0, "3"),
            (2.5, "2.5"),
            ({"a": [1, 2]}, '{"a":[1,2]}'),
            (datetime(2024, 1, 2, tzinfo=UTC), "2024-01-02T00:00:00+00:00"),
        ],
    )
    def test_render(self, value: object, text: str) -> None:
        assert render(value) == text


class TestInterpolate:
    def test_recurses_into_config(self, context: DataContext) -> None:
        config = {
            "to": "{{ $json.firstName }}@example.com",
            "lines": ["{{ $json.items[1].sku }}", "static"],
            "count": 3,
            "meta": {"id": "{{ nodes.node_1.body.id }}"},
        }
        assert interpolate(config, context) == {
            "to": "John@example.com",
            "lines": ["B2", "static"],
            "count": 3,
            "meta": {"id": "r-9"},
        }

    def test_run_time_default_blanks_unresolved(self, context: DataContext) -> None:
        assert interpolate({"x": "{{ $json.gone }}"}, context) == {"x": None}


class TestStaticAnalysis:
    def test_extract_references(self) -> None:
        refs = extract_references('{{ $json.a }} {{ nodes.n1.body[0] }} {{ $node["Step"].json.x }}')
        assert [(r.root, r.node, r.path) for r in refs] == [
            ("$json", None, ("a",)),
            ("nodes", "n1", ("body", 0)),
            ("$node", "Step", ("json", "x")),
        ]

    def test_referenced_nodes_maps_names(self) -> None:
        config = {
            "a": "{{ nodes.n1.x }}",
            "b": ['{{ $node["Fetch Order"].json.y }}'],
            "c": {"d": '{{ $node["Unmapped"].json }}'},
        }
        assert referenced_nodes(config, {"Fetch Order": "node_1"}) == {"n1", "node_1", "Unmapped"}

    def test_plain_values_reference_nothing(self) -> None:
        assert referenced_nodes({"a": 1, "b": "text"}) == set()
