"""
Tests for data models: Column, Response, keys and StoreData.
"""

from datetime import datetime, timezone

import pytest

from tablestore.models.column import Column, parse_columns
from tablestore.models.exceptions import ConstraintError, DataError, NotFoundError
from tablestore.models.keys import evaluate_key_path, inject_key, normalize_key, sort_key
from tablestore.models.object_store import StoreData
from tablestore.models.response import OperationError, Response, Status


class TestColumn:
    """Tests for column declarations."""

    def test_bare_name(self):
        assert Column.parse("name") == Column("name", unique=False)

    def test_mapping(self):
        assert Column.parse({"name": "email", "unique": True}) == Column("email", unique=True)

    def test_mapping_defaults_to_non_unique(self):
        assert Column.parse({"name": "email"}).unique is False

    def test_missing_name(self):
        with pytest.raises(ValueError):
            Column.parse({"unique": True})

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            Column.parse(42)

    def test_order_and_duplicates_kept(self):
        columns = parse_columns(["b", "a", {"name": "b", "unique": True}])
        assert [c.name for c in columns] == ["b", "a", "b"]

    def test_none_is_empty(self):
        assert parse_columns(None) == []


class TestResponse:
    """Tests for the response envelope."""

    def test_status_coerced(self):
        response = Response("ok", 201)
        assert response.status is Status.CREATED
        assert response.ok

    def test_to_dict_omits_unset_fields(self):
        assert Response("Record not found.", Status.NOT_FOUND).to_dict() == {
            "message": "Record not found.",
            "status": 404,
        }

    def test_to_dict_with_schema(self):
        response = Response("created", Status.CREATED, schema=["a"])
        assert response.to_dict()["schema"] == ["a"]

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            Response("teapot", 418)

    def test_operation_error_proxies_envelope(self):
        cause = ConstraintError("duplicate")
        error = OperationError(Response("failed", Status.INTERNAL_ERROR, error=cause))
        assert error.status == 500
        assert error.message == "failed"
        assert error.error is cause
        assert not error.response.ok


class TestKeys:
    """Tests for key validation and ordering."""

    def test_bool_is_not_a_key(self):
        with pytest.raises(DataError):
            normalize_key(True)

    def test_nan_is_not_a_key(self):
        with pytest.raises(DataError):
            normalize_key(float("nan"))

    def test_list_becomes_tuple(self):
        assert normalize_key(["a", [1, 2]]) == ("a", (1, 2))

    def test_cross_type_order(self):
        keys = ["a", (1,), b"x", datetime(2020, 1, 1), 5]
        assert sorted(keys, key=sort_key) == [5, datetime(2020, 1, 1), "a", b"x", (1,)]

    def test_dotted_key_path(self):
        record = {"user": {"id": 3}}
        assert evaluate_key_path(record, "user.id") == 3
        assert evaluate_key_path(record, "user.missing") is None

    def test_inject_nested_key(self):
        record = {}
        inject_key(record, "meta.id", 7)
        assert record == {"meta": {"id": 7}}


class TestStoreData:
    """Tests for the in-memory store structure."""

    def test_records_in_key_order(self, store):
        for key in [5, 1, 3]:
            store.put_record(key, {"id": key})
        assert [r["id"] for r in store.records()] == [1, 3, 5]

    def test_delete_keeps_order(self, store):
        for key in [1, 2, 3]:
            store.put_record(key, {"id": key})
        assert store.delete(2)
        assert not store.delete(2)
        assert [r["id"] for r in store.records()] == [1, 3]

    def test_delete_picks_exact_key_among_equal_sort_positions(self, store):
        naive = datetime(2024, 1, 1, 12, 0)
        aware = datetime.fromtimestamp(naive.timestamp(), tz=timezone.utc)
        store.put_record(naive, {"id": naive, "tz": False})
        store.put_record(aware, {"id": aware, "tz": True})

        assert store.delete(aware)
        assert [r["tz"] for r in store.records()] == [False]
        assert store.delete(naive)
        assert list(store.records()) == []

    def test_collision_without_overwrite(self, store):
        store.put_record(1, {"id": 1})
        with pytest.raises(ConstraintError):
            store.put_record(1, {"id": 1}, overwrite=False)

    def test_index_built_from_existing_records(self, store, sample_records):
        for record in sample_records:
            store.put_record(store.assign_key(record), record)
        index = store.create_index("name", "name")
        assert index.first("grace") == 2

    def test_unique_index_rejects_existing_duplicates(self, store):
        store.put_record(1, {"id": 1, "email": "x"})
        store.put_record(2, {"id": 2, "email": "x"})
        with pytest.raises(ConstraintError):
            store.create_index("email", "email", unique=True)
        assert "email" not in store.indexes

    def test_unknown_index(self, store):
        with pytest.raises(NotFoundError):
            store.index("missing")

    def test_clone_is_independent(self, store):
        store.create_index("name", "name")
        store.put_record(1, {"id": 1, "name": "ada"})
        clone = store.clone()
        clone.put_record(2, {"id": 2, "name": "ada"})
        clone.counter = 10

        assert store.count() == 1
        assert store.index("name").primary_keys("ada") == [1]
        assert store.counter == 0

    def test_store_needs_key_path(self):
        with pytest.raises(DataError):
            StoreData("items", "")
