"""Tests for redactkit.engine module."""
from __future__ import annotations

import collections
import copy
import logging
import types
import weakref
from collections import namedtuple
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from redactkit.censors import FieldNameCensor
from redactkit.engine import DEFAULT_MAX_DEPTH, Engine, EngineConfig, Filter
from redactkit.errors import ErrorCode, RedactKitError
from redactkit.options import (
    new_engine,
    with_allowed_shape,
    with_allowed_type,
    with_censor,
    with_contain,
    with_custom_tag_key,
    with_field_name,
    with_field_prefix,
    with_max_depth,
    with_tag,
    with_type,
)
from redactkit.redactors import mask_with_symbol, replace_with
from redactkit.shapes import Shape


@dataclass
class Message:
    author: str
    body: str


@dataclass
class Profile:
    name: str
    email: str = field(default="", metadata={"redact": "secret"})
    tags: list[str] = field(default_factory=list)


@dataclass
class Level:
    marker: str
    next: Optional[Level] = None


@dataclass(frozen=True)
class FrozenCard:
    number: str


@dataclass(frozen=True)
class Key:
    value: str


class Session:
    def __init__(self, user: str, token: str) -> None:
        self.user = user
        self._token = token


class Guarded:
    def __init__(self, secret: str) -> None:
        self._secret = secret

    def __getattribute__(self, name: str):
        if name.startswith("_") and not name.startswith("__"):
            raise AttributeError(name)
        return super().__getattribute__(name)


class Unset:
    __slots__ = ("pin", "label")


class NeedsArgs:
    def __new__(cls, required: str) -> NeedsArgs:
        instance = super().__new__(cls)
        instance.required = required
        return instance


class PairList(list):
    def __init__(self, first: Any, second: Any) -> None:
        super().__init__([first, second])


class Catalog(list):
    def __init__(self, source: dict) -> None:
        super().__init__(source.get("items", []))


class OwnedSettings(dict):
    def __init__(self, entries: dict) -> None:
        entries = dict(entries)
        self.owner = entries.pop("owner")
        super().__init__(entries)


class Target:
    def __init__(self, secret: str) -> None:
        self.secret = secret


@dataclass
class Handler:
    url: str
    password: str

    def __call__(self) -> str:
        return self.url


class Cursor:
    def __init__(self, user: str, password: str) -> None:
        self.user = user
        self.password = password

    def __iter__(self) -> Cursor:
        return self

    def __next__(self) -> str:
        raise StopIteration


Pair = namedtuple("Pair", ["user", "password"])


class TestScenarios:
    """End-to-end redaction scenarios."""

    def test_field_name_on_map(self) -> None:
        engine = new_engine(with_field_name("Password"))
        record = {"Name": "alice", "Password": "p@ss"}

        result = engine.redact("user", record)

        assert result == {"Name": "alice", "Password": "[REDACTED]"}
        assert record == {"Name": "alice", "Password": "p@ss"}

    def test_only_matching_sequence_element_changes(self) -> None:
        engine = new_engine(with_contain("secret"))
        messages = [
            Message("a", "hello"),
            Message("b", "the secret plan"),
            Message("c", "bye"),
        ]

        result = engine.redact("messages", messages)

        assert result[0] == messages[0]
        assert result[1] == Message("b", "[REDACTED]")
        assert result[2] == messages[2]
        assert result[0] is not messages[0]
        assert messages[1].body == "the secret plan"

    def test_map_of_aggregates_with_restricted_field(self) -> None:
        engine = new_engine(with_field_name("_token"))
        sessions = {"alice": Session("alice", "t-1"), "bob": Session("bob", "t-2")}

        result = engine.redact("sessions", sessions)

        assert set(result) == {"alice", "bob"}
        assert result["alice"]._token == "[REDACTED]"
        assert result["bob"]._token == "[REDACTED]"
        assert result["bob"].user == "bob"
        assert sessions["alice"]._token == "t-1"

    def test_map_with_unrebuildable_values_becomes_empty(self) -> None:
        engine = new_engine(with_field_name("required"))
        values = {"a": NeedsArgs("secret")}

        assert engine.redact("values", values) == {}

    def test_reference_chain_is_truncated(self) -> None:
        engine = new_engine(with_contain("marker"))
        head = None
        for i in range(40, 0, -1):
            head = Level(f"marker-{i}", head)

        result = engine.redact("chain", head)

        node = result
        for _ in range(32):
            assert node.marker == "[REDACTED]"
            node = node.next
        # level 33 sits at the depth bound
        assert node is None

    def test_none_stays_none(self) -> None:
        assert new_engine(with_field_name("x")).redact("x", None) is None

    def test_redaction_is_a_fixed_point(self) -> None:
        engine = new_engine(with_field_name("Password"))
        once = engine.redact("user", {"Name": "alice", "Password": "p@ss"})
        assert engine.redact("user", once) == once


class TestProperties:
    """Invariants that hold for any input."""

    def _sample(self) -> dict[str, Any]:
        return {
            "profile": Profile("alice", "a@example.com", ["admin", "secret-tag"]),
            "history": [Message("a", "secret one"), ("x", "secret two")],
            "nested": {"password": "hunter2", "ids": {1, 2, 3}},
        }

    def test_input_is_never_mutated(self) -> None:
        engine = new_engine(with_contain("secret"), with_field_name("password"), with_tag("secret"))
        value = self._sample()
        snapshot = copy.deepcopy(value)

        engine.redact("sample", value)

        assert value == snapshot

    def test_fixed_point_on_nested_values(self) -> None:
        engine = new_engine(with_contain("secret"), with_field_name("password"), with_tag("secret"))
        once = engine.redact("sample", self._sample())
        assert engine.redact("sample", once) == once

    def test_first_match_wins(self) -> None:
        engine = new_engine(
            with_field_name("password", replace_with("first")),
            with_contain("hunter", replace_with("second")),
        )
        assert engine.redact("", {"password": "hunter2"}) == {"password": "first"}

    def test_allow_listed_type_is_returned_as_is(self) -> None:
        engine = new_engine(with_type(Message), with_contain("secret"), with_allowed_type(Message))
        message = Message("a", "secret")
        assert engine.redact("m", message) is message

    def test_allow_listed_shape_is_returned_as_is(self) -> None:
        engine = new_engine(with_field_name("password"), with_allowed_shape(Shape.MAP))
        record = {"password": "x"}
        assert engine.redact("", record) is record

    def test_allow_list_inside_containers(self) -> None:
        engine = new_engine(with_contain("secret"), with_allowed_type(Message))
        message = Message("a", "secret")
        result = engine.redact("", [message, "secret"])
        assert result[0] is message
        assert result[1] == "[REDACTED]"


class TestDepthBound:
    """Recursion stops at max_depth."""

    def test_self_referencing_map_terminates(self) -> None:
        loop: dict[str, Any] = {}
        loop["self"] = loop

        result = new_engine().redact("loop", loop)

        node = result
        for _ in range(DEFAULT_MAX_DEPTH - 1):
            node = node["self"]
        assert node == {"self": {}}
        assert node["self"] is not loop

    def test_self_referencing_list_terminates(self) -> None:
        loop: list[Any] = []
        loop.append(loop)

        result = new_engine().redact("loop", loop)

        node = result
        for _ in range(DEFAULT_MAX_DEPTH):
            node = node[0]
        assert node == []

    def test_container_at_bound_is_zeroed(self) -> None:
        engine = new_engine(with_max_depth(1))
        assert engine.redact("", {"a": {"b": "c"}, "n": 5, "s": "t"}) == {"a": {}, "n": 5, "s": "t"}

    def test_leaf_at_bound_is_still_filtered(self) -> None:
        engine = new_engine(with_max_depth(1), with_field_name("pw"))
        assert engine.redact("", {"pw": "x", "l": ["y"]}) == {"pw": "[REDACTED]", "l": []}

    def test_zero_depth_keeps_only_a_leaf_root(self) -> None:
        engine = new_engine(with_max_depth(0))
        assert engine.redact("", {"a": "b"}) == {}
        assert engine.redact("", "root") == "root"


class TestTags:
    """Tag-based redaction."""

    def test_tag_on_dataclass_field(self) -> None:
        engine = new_engine(with_tag("secret"))
        result = engine.redact("p", Profile("alice", "a@example.com"))
        assert result == Profile("alice", "[REDACTED]")

    def test_custom_tag_key_applies_regardless_of_order(self) -> None:
        @dataclass
        class Account:
            number: str = field(metadata={"privacy": "secret"})

        engine = new_engine(with_tag("secret"), with_custom_tag_key("privacy"))
        assert engine.redact("a", Account("123")).number == "[REDACTED]"

    def test_explicit_tag_key_wins(self) -> None:
        @dataclass
        class Account:
            number: str = field(metadata={"level": "high"})

        engine = new_engine(with_tag("high", key="level"))
        assert engine.redact("a", Account("123")).number == "[REDACTED]"


class TestAggregates:
    """Aggregate cloning."""

    def test_clone_is_independent(self) -> None:
        profile = Profile("alice", "a@example.com", ["x"])
        result = new_engine().redact("p", profile)
        assert result == profile
        assert result is not profile
        assert result.tags is not profile.tags

    def test_hidden_attribute_is_inspected_and_rewritten(self) -> None:
        engine = new_engine(with_contain("hunter"))
        original = Guarded("hunter2")

        result = engine.redact("g", original)

        assert object.__getattribute__(result, "__dict__") == {"_secret": "[REDACTED]"}
        assert object.__getattribute__(original, "__dict__") == {"_secret": "hunter2"}

    def test_frozen_dataclass_field_is_rewritten(self) -> None:
        engine = new_engine(with_field_name("number", mask_with_symbol("*", 4)))
        card = FrozenCard("4111111111111111")

        result = engine.redact("card", card)

        assert result == FrozenCard("**** (remained 12 chars)")
        assert card.number == "4111111111111111"

    def test_unset_slot_stays_unset(self) -> None:
        engine = new_engine(with_field_name("pin"))
        original = Unset()
        original.label = "home"

        result = engine.redact("u", original)

        assert result.label == "home"
        assert not hasattr(result, "pin")

    def test_namedtuple_is_rebuilt(self) -> None:
        engine = new_engine(with_field_name("password"))
        assert engine.redact("p", Pair("alice", "x")) == Pair("alice", "[REDACTED]")

    def test_exception_args_are_redacted(self) -> None:
        engine = new_engine(with_contain("token="))
        err = ValueError("token=abc")

        result = engine.redact("err", err)

        assert type(result) is ValueError
        assert result.args == ("[REDACTED]",)
        assert err.args == ("token=abc",)

    def test_unallocatable_aggregate_becomes_none(self) -> None:
        assert new_engine().redact("n", NeedsArgs("x")) is None

    def test_non_string_match_becomes_zero(self) -> None:
        engine = new_engine(with_field_name("pin"), with_field_prefix("card_"))
        result = engine.redact("", {"pin": 1234, "card_meta": {"a": 1}, "ok": 1})
        assert result == {"pin": 0, "card_meta": {}, "ok": 1}

    def test_matched_aggregate_becomes_none(self) -> None:
        engine = new_engine(with_type(Message))
        assert engine.redact("", {"m": Message("a", "b")}) == {"m": None}

    def test_callable_dataclass_is_cloned(self) -> None:
        handler = Handler("https://x", "hunter2")
        result = new_engine(with_field_name("password")).redact("h", handler)
        assert result is not handler
        assert result == Handler("https://x", "[REDACTED]")
        assert result() == "https://x"
        assert handler.password == "hunter2"

    def test_iterator_class_is_cloned(self) -> None:
        cursor = Cursor("alice", "hunter2")
        result = new_engine(with_field_name("password")).redact("c", cursor)
        assert result is not cursor
        assert result.user == "alice"
        assert result.password == "[REDACTED]"
        assert cursor.password == "hunter2"


class TestSequences:
    """Sequence cloning."""

    def test_container_types_are_kept(self) -> None:
        engine = new_engine(with_contain("secret"))
        assert engine.redact("", ("a", "secret")) == ("a", "[REDACTED]")
        assert engine.redact("", {"a", "secret"}) == {"a", "[REDACTED]"}
        assert engine.redact("", frozenset({"secret"})) == frozenset({"[REDACTED]"})

    def test_deque_keeps_maxlen(self) -> None:
        result = new_engine().redact("", collections.deque([1, 2], maxlen=5))
        assert result == collections.deque([1, 2])
        assert result.maxlen == 5

    def test_elements_carry_no_name(self) -> None:
        engine = new_engine(with_field_name("passwords"))
        # The container itself matches, its elements never see the name.
        assert engine.redact("passwords", ["a", "b"]) == []
        assert engine.redact("other", ["passwords"]) == ["passwords"]

    def test_bytearray_is_copied(self) -> None:
        raw = bytearray(b"abc")
        result = new_engine().redact("", [raw])
        assert result == [bytearray(b"abc")]
        assert result[0] is not raw

    def test_unrebuildable_sequence_degrades(self) -> None:
        assert new_engine().redact("", PairList("a", "b")) is None

    def test_constructor_errors_of_any_kind_degrade(self) -> None:
        catalog = Catalog({"items": ["secret"]})
        assert new_engine(with_contain("secret")).redact("", catalog) is None
        assert catalog == ["secret"]


class TestMaps:
    """Map cloning."""

    def test_keys_are_never_censored(self) -> None:
        engine = new_engine(with_contain("secret"))
        assert engine.redact("", {"secret-key": "value"}) == {"secret-key": "value"}

    def test_non_string_keys(self) -> None:
        engine = new_engine(with_contain("secret"))
        assert engine.redact("", {1: "secret", (2, "b"): "ok"}) == {1: "[REDACTED]", (2, "b"): "ok"}

    def test_aggregate_key_empties_map(self) -> None:
        engine = new_engine()
        assert engine.redact("", {Key("a"): "value"}) == {}

    def test_defaultdict_keeps_factory(self) -> None:
        source = collections.defaultdict(list, {"password": ["x"]})
        result = new_engine(with_field_name("password")).redact("", source)
        assert result == {"password": []}
        assert result.default_factory is list

    def test_ordered_dict_type_is_kept(self) -> None:
        source = collections.OrderedDict([("b", 1), ("a", 2)])
        result = new_engine().redact("", source)
        assert type(result) is collections.OrderedDict
        assert list(result) == ["b", "a"]

    def test_mapping_proxy_is_rebuilt(self) -> None:
        source = types.MappingProxyType({"password": "x"})
        result = new_engine(with_field_name("password")).redact("", source)
        assert isinstance(result, types.MappingProxyType)
        assert dict(result) == {"password": "[REDACTED]"}

    def test_constructor_errors_of_any_kind_degrade(self) -> None:
        settings = OwnedSettings({"owner": "alice", "token": "t-1"})
        assert new_engine(with_field_name("token")).redact("", settings) is None
        assert settings == {"token": "t-1"}


class TestReferencesAndSumTypes:
    """Cells, weak references and opaque handles."""

    def test_cell_contents_are_redacted(self) -> None:
        engine = new_engine(with_contain("secret"))
        cell = types.CellType("secret")

        result = engine.redact("", cell)

        assert result is not cell
        assert result.cell_contents == "[REDACTED]"
        assert cell.cell_contents == "secret"

    def test_empty_cell(self) -> None:
        result = new_engine().redact("", types.CellType())
        with pytest.raises(ValueError):
            result.cell_contents

    def test_live_weakref_is_unwrapped(self) -> None:
        engine = new_engine(with_field_name("secret"))
        target = Target("s3cr3t")

        result = engine.redact("", weakref.ref(target))

        assert isinstance(result, Target)
        assert result.secret == "[REDACTED]"
        assert target.secret == "s3cr3t"

    def test_dead_weakref_becomes_none(self) -> None:
        ref = weakref.ref(Target("gone"))
        assert ref() is None
        assert new_engine().redact("", ref) is None

    def test_opaque_handles_are_shared(self) -> None:
        func = lambda: "secret"  # noqa: E731
        result = new_engine(with_contain("secret")).redact("", {"f": func, "t": Target})
        assert result["f"] is func
        assert result["t"] is Target


class TestEngineConfig:
    """Configuration validation and engine construction."""

    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.tag_key == "redact"
        assert config.redact_message == "[REDACTED]"
        assert config.max_depth == 32
        assert config.filters == ()

    def test_empty_tag_key_rejected(self) -> None:
        with pytest.raises(RedactKitError) as exc_info:
            EngineConfig(tag_key="")
        assert exc_info.value.code is ErrorCode.E001

    def test_negative_depth_rejected(self) -> None:
        with pytest.raises(RedactKitError) as exc_info:
            EngineConfig(max_depth=-1)
        assert exc_info.value.code is ErrorCode.E003

    def test_direct_construction(self) -> None:
        engine = Engine(EngineConfig(filters=[Filter(FieldNameCensor("pw"))], redact_message="***"))
        assert engine.redact("", {"pw": "x"}) == {"pw": "***"}
        assert engine("", {"pw": "x"}) == {"pw": "***"}

    def test_censor_errors_propagate(self) -> None:
        def broken(name: str, value: Any, tags: Any) -> bool:
            raise RuntimeError("censor failed")

        with pytest.raises(RuntimeError):
            new_engine(with_censor(broken)).redact("", "x")


class TestLogging:
    """Degradations are logged without values."""

    def test_debug_log_has_no_values(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="redactkit")
        new_engine().redact("", {"a": NeedsArgs("hunter2"), Key("hunter3"): 1})
        new_engine(with_max_depth(0)).redact("", ["hunter4"])

        assert "NeedsArgs" in caplog.text
        assert "hunter" not in caplog.text
