"""
Tests for key transformers.
"""

from datetime import UTC, datetime

from astra_sdk.serdes import Camel2SnakeCase, CollectionSerDes


class TestCamel2SnakeCase:
    """Tests for Camel2SnakeCase."""

    def test_keys(self) -> None:
        transformer = Camel2SnakeCase()
        assert transformer.serialize_key("firstName") == "first_name"
        assert transformer.serialize_key("aLongKeyName") == "a_long_key_name"
        assert transformer.deserialize_key("first_name") == "firstName"

    def test_keys_round_trip(self) -> None:
        transformer = Camel2SnakeCase()
        for key in ["name", "firstName", "createdAtUtc"]:
            assert transformer.deserialize_key(transformer.serialize_key(key)) == key

    def test_id_left_alone(self) -> None:
        assert Camel2SnakeCase().deserialize({"_id": 1, "user_id": 2}) == {"_id": 1, "userId": 2}

    def test_id_transformed_when_not_excepted(self) -> None:
        assert Camel2SnakeCase(except_id=False).deserialize({"_id": 1}) == {"Id": 1}

    def test_top_level_only_by_default(self) -> None:
        obj = {"homeAddress": {"streetName": "Main"}}
        assert Camel2SnakeCase().serialize(obj) == {"home_address": {"streetName": "Main"}}

    def test_transform_nested_predicate(self) -> None:
        transformer = Camel2SnakeCase(transform_nested=lambda path: path[0] == "homeAddress")
        obj = {"homeAddress": {"streetName": "Main"}, "otherThing": {"innerKey": 1}}
        assert transformer.serialize(obj) == {"home_address": {"street_name": "Main"}, "other_thing": {"innerKey": 1}}

    def test_nested_lists(self) -> None:
        transformer = Camel2SnakeCase(transform_nested=lambda path: True)
        obj = {"someItems": [{"itemName": "a"}, 1]}
        assert transformer.serialize(obj) == {"some_items": [{"item_name": "a"}, 1]}

    def test_input_not_mutated(self) -> None:
        obj = {"firstName": "Ada"}
        Camel2SnakeCase().serialize(obj)
        assert obj == {"firstName": "Ada"}


class TestWithCollectionSerDes:
    """Keys are transformed after codecs run on serialize, before on deserialize."""

    def test_serialize(self) -> None:
        serdes = CollectionSerDes(key_transformer=Camel2SnakeCase())
        wire, _ = serdes.serialize({"createdAt": datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)})
        assert wire == {"created_at": {"$date": 1000}}

    def test_deserialize(self) -> None:
        serdes = CollectionSerDes(key_transformer=Camel2SnakeCase())
        doc = serdes.deserialize({"_id": "x", "created_at": {"$date": 1000}})
        assert doc == {"_id": "x", "createdAt": datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)}
