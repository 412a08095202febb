"""Tests for typed table operations."""

import gc
import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

import pytest

from typed_sqlite import (
    AutoIncrement,
    BackendError,
    Column,
    Db,
    Distinct,
    OrderBy,
    QueryConstraintError,
    ReferenceExpiredError,
    SchemaError,
    SqlType,
    Where,
)


@dataclass
class Person:
    id: int = 0
    name: str = ""
    email: str = ""
    favourite_animal: str = ""


@dataclass
class Note:
    id: int = 0
    title: str = ""
    pinned: bool = False
    score: float = 0.0
    tags: list = field(default_factory=list)
    meta: dict = field(default_factory=dict)
    body: Optional[str] = None


class Point(NamedTuple):
    x: int = 0
    y: int = 0


@dataclass
class Order:
    id: int = 0
    key: str = ""
    end: int = 0


@dataclass
class Level:
    depth: int = 0


@dataclass
class Branch:
    level: Level = field(default_factory=Level)
    label: str = ""


@dataclass
class Tree:
    id: int = 0
    inner: Branch = field(default_factory=Branch)
    leaves: list[Level] = field(default_factory=list)
    corner: Optional[Point] = None


@dataclass
class Counter:
    value: int = 0


PEOPLE = [
    Person(1, "ann", "ann@mail.com", "dog"),
    Person(2, "bob", "bob@mail.com", "cat"),
    Person(3, "cid", "cid@mail.com", "dog"),
]


@pytest.fixture
def db():
    with Db.mem() as db:
        yield db


@pytest.fixture
def persons(db):
    return db.table(Person, "persons")


class TestTableCreation:
    """Tests for creating tables."""

    def test_properties(self, persons):
        assert persons.name == "persons"
        assert persons.record_type is Person
        assert persons.columns[0] == Column("id", SqlType.INTEGER)
        assert persons.auto_increment_column is None

    def test_create_is_idempotent(self, db, persons):
        """Test that creating the same table twice keeps existing rows."""
        persons.insert_one(PEOPLE[0])
        again = db.table(Person, "persons")
        assert again.count_rows() == 1
        assert again.select() == [PEOPLE[0]]

    def test_default_name(self, db):
        assert db.table(Point).name == "point"

    def test_invalid_name(self, db):
        with pytest.raises(SchemaError, match="not a valid table name"):
            db.table(Person, "drop table persons")

    def test_not_a_record_type(self, db):
        with pytest.raises(SchemaError):
            db.table(int, "numbers")

    def test_conflicting_existing_table(self, db):
        """Test that an existing table with other columns surfaces on use, not creation."""
        db.storage.execute("CREATE TABLE persons (other TEXT)")
        persons = db.table(Person, "persons")
        with pytest.raises(BackendError):
            persons.insert_one(PEOPLE[0])


class TestSelect:
    """Tests for select and partial_select."""

    def test_basic_crud_scenario(self, persons):
        """Test insert then select with Distinct and Where."""
        person = Person(1, "somename", "somemail@mail.com", "dog")
        persons.insert_one(person)
        result = persons.select(Distinct() + Where("favourite_animal = 'dog'"))
        assert result == [person]

    def test_empty_result(self, persons):
        assert persons.select() == []
        persons.insert_many(PEOPLE)
        assert persons.select(Where("name = 'nobody'")) == []

    def test_round_trip_all_field_kinds(self, db):
        notes = db.table(Note)
        note = Note(1, "t", True, 2.5, ["a", "b"], {"k": {"n": 1}}, "body")
        notes.insert_one(note)
        assert notes.select() == [note]

    def test_null_round_trip(self, db):
        notes = db.table(Note)
        notes.insert_one(Note(id=1))
        assert notes.select()[0].body is None

    def test_named_tuple_records(self, db):
        points = db.table(Point)
        points.insert_many([Point(1, 2), Point(3, 4)])
        assert points.select(OrderBy(True)) == [Point(3, 4), Point(1, 2)]

    def test_order_by_first_column(self, persons):
        persons.insert_many([PEOPLE[1], PEOPLE[2], PEOPLE[0]])
        assert [p.id for p in persons.select(OrderBy())] == [1, 2, 3]
        assert [p.id for p in persons.select(OrderBy(descending=True))] == [3, 2, 1]

    def test_order_by_named_column(self, persons):
        persons.insert_many(PEOPLE)
        result = persons.select(OrderBy(column="favourite_animal") + Where("id < 3"))
        assert [p.name for p in result] == ["bob", "ann"]

    def test_several_where(self, persons):
        persons.insert_many(PEOPLE)
        result = persons.select(Where("favourite_animal = 'dog'") + Where("id > 1"))
        assert result == [PEOPLE[2]]

    def test_distinct(self, persons):
        persons.insert_many([PEOPLE[0], PEOPLE[0]])
        assert len(persons.select()) == 2
        assert persons.select(Distinct()) == [PEOPLE[0]]

    def test_duplicate_option(self, persons):
        with pytest.raises(QueryConstraintError):
            persons.select(OrderBy() + OrderBy())

    def test_predicate_rejected_by_engine(self, persons):
        with pytest.raises(BackendError):
            persons.select(Where("no_such_column = 1"))

    def test_partial_select_fills_defaults(self, persons):
        """Test that omitted fields come back as defaults, not stored values."""
        persons.insert_one(PEOPLE[0])
        result = persons.partial_select(["id", "name"])
        assert result == [Person(id=1, name="ann")]
        assert result[0] != PEOPLE[0]

    def test_partial_select_column_string(self, persons):
        persons.insert_many(PEOPLE)
        result = persons.partial_select("name, id", OrderBy(True))
        assert [(p.id, p.name) for p in result] == [(3, "cid"), (2, "bob"), (1, "ann")]

    def test_partial_select_distinct(self, persons):
        persons.insert_many(PEOPLE)
        result = persons.partial_select(["favourite_animal"], Distinct() + OrderBy())
        assert [p.favourite_animal for p in result] == ["cat", "dog"]

    def test_partial_select_no_columns(self, persons):
        persons.insert_one(PEOPLE[0])
        assert persons.partial_select([]) == [PEOPLE[0]]

    def test_partial_select_unknown_column(self, persons):
        with pytest.raises(QueryConstraintError, match="unknown column"):
            persons.partial_select(["id", "age"])

    def test_partial_select_bad_column_list(self, persons):
        with pytest.raises(QueryConstraintError):
            persons.partial_select("id,, name")


class TestInsert:
    """Tests for insert_one and insert_many."""

    def test_insert_many_returns_count(self, persons):
        assert persons.insert_many(PEOPLE) == 3
        assert persons.insert_many([]) == 0

    def test_insert_many_is_not_atomic(self, db, caplog):
        """Test that a failure keeps earlier inserts and reports the failing index."""
        db.storage.execute("CREATE TABLE persons (id INTEGER UNIQUE, name TEXT, email TEXT, favourite_animal TEXT)")
        persons = db.table(Person, "persons")

        with caplog.at_level(logging.WARNING, logger="typed_sqlite.table"):
            with pytest.raises(BackendError, match="stopped at record 2"):
                persons.insert_many([PEOPLE[0], PEOPLE[1], PEOPLE[0], PEOPLE[2]])

        assert persons.count_rows() == 2
        assert "insert_many into persons stopped at record 2" in caplog.text

    def test_insert_wrong_record_type(self, persons):
        with pytest.raises(SchemaError):
            persons.insert_one(Point(1, 2))

    def test_auto_increment(self, db):
        persons = db.table(Person, "persons", AutoIncrement())
        assert persons.auto_increment_column == "id"

        persons.insert_many([Person(name="a"), Person(name="b")])
        persons.insert_one(Person(id=10, name="c"))
        persons.insert_one(Person(name="d"))

        assert [(p.id, p.name) for p in persons.select(OrderBy())] == [
            (1, "a"),
            (2, "b"),
            (10, "c"),
            (11, "d"),
        ]

    def test_auto_increment_invalid_column(self, db):
        with pytest.raises(QueryConstraintError):
            db.table(Person, "persons", AutoIncrement("name"))


class TestUpdate:
    """Tests for update_one and update_many."""

    def test_update_one(self, persons):
        persons.insert_many(PEOPLE)
        changed = Person(2, "bobby", "bobby@mail.com", "owl")
        assert persons.update_one(changed, Where("id = 2")) == 1
        assert persons.select(Where("id = 2")) == [changed]
        assert persons.count_rows() == 3

    def test_update_with_predicate_string(self, persons):
        persons.insert_many(PEOPLE)
        assert persons.update_one(Person(9, "x", "y", "z"), "favourite_animal = 'dog'") == 2

    def test_update_no_match(self, persons):
        assert persons.update_one(PEOPLE[0], Where("id = 42")) == 0

    def test_update_requires_single_where(self, persons):
        with pytest.raises(QueryConstraintError):
            persons.update_one(PEOPLE[0], Distinct() + Where("id = 1"))
        with pytest.raises(QueryConstraintError):
            persons.update_one(PEOPLE[0], Where("id = 1") + Where("id = 2"))

    def test_update_many(self, persons):
        persons.insert_one(PEOPLE[0])
        updates = [Person(1, "first", "", "dog"), Person(1, "second", "", "dog")]
        assert persons.update_many(updates, Where("id = 1")) == 2
        assert persons.select()[0].name == "second"

    def test_update_many_is_not_atomic(self, db):
        db.storage.execute("CREATE TABLE persons (id INTEGER, name TEXT NOT NULL, email TEXT, favourite_animal TEXT)")
        persons = db.table(Person, "persons")
        persons.insert_one(PEOPLE[0])

        first = Person(1, "renamed", "", "dog")
        with pytest.raises(BackendError, match="update_many stopped at record 1"):
            persons.update_many([first, Person(1, None, "", "dog")], Where("id = 1"))  # type: ignore[arg-type]
        assert persons.select()[0].name == "renamed"


class TestDeleteAndCount:
    """Tests for delete and count_rows."""

    def test_count_scenario(self, persons):
        assert persons.count_rows() == 0
        persons.insert_many(PEOPLE)
        assert persons.count_rows() == 3

    def test_count_filtered(self, persons):
        persons.insert_many(PEOPLE)
        assert persons.count_rows(Where("favourite_animal = 'dog'")) == 2
        assert persons.count_rows("id = 3") == 1

    def test_count_uses_own_table(self, db, persons):
        """Test that counting looks at this table, not another one."""
        other = db.table(Point)
        other.insert_many([Point(), Point(), Point(), Point()])
        persons.insert_one(PEOPLE[0])
        assert persons.count_rows() == 1

    def test_delete(self, persons):
        persons.insert_many(PEOPLE)
        assert persons.delete(Where("favourite_animal = 'dog'")) == 2
        assert persons.select() == [PEOPLE[1]]

    def test_delete_requires_where(self, persons):
        with pytest.raises(QueryConstraintError, match="Where option is required"):
            persons.delete(Distinct())


class TestReferenceLifetime:
    """Tests for tables outliving their database."""

    def test_dropped_db(self):
        """Test that dropping every Db handle expires its tables."""
        db = Db.mem()
        persons = db.table(Person, "persons")
        persons.insert_one(PEOPLE[0])

        del db
        gc.collect()

        with pytest.raises(ReferenceExpiredError):
            persons.count_rows()
        with pytest.raises(ReferenceExpiredError):
            persons.select()
        with pytest.raises(ReferenceExpiredError):
            persons.insert_one(PEOPLE[1])

    def test_clone_keeps_connection_alive(self):
        db = Db.mem()
        persons = db.table(Person, "persons")
        persons.insert_one(PEOPLE[0])

        clone = db.clone()
        del db
        gc.collect()

        assert persons.count_rows() == 1
        assert clone.table(Person, "persons").select() == [PEOPLE[0]]

    def test_table_does_not_keep_connection_alive(self):
        db = Db.mem()
        storage_tables = [db.table(Person, "persons"), db.table(Point)]
        del db
        gc.collect()
        for table in storage_tables:
            with pytest.raises(ReferenceExpiredError):
                table.count_rows()

    def test_closed_db(self, db, persons):
        db.close()
        with pytest.raises(ReferenceExpiredError):
            persons.delete(Where("id = 1"))

    def test_expired_error_is_reference_error(self, db, persons):
        db.close()
        with pytest.raises(ReferenceError):
            persons.count_rows()

    def test_bind_to_other_db(self, persons):
        with Db.mem() as other:
            persons.bind(other)
            persons.insert_one(PEOPLE[0])
            assert other.table(Person, "persons").count_rows() == 1

    def test_bind_to_closed_db(self, persons):
        other = Db.mem()
        other.close()
        with pytest.raises(ReferenceExpiredError):
            persons.bind(other)


class TestKeywordNames:
    """Tests for tables and fields named like SQL keywords."""

    def test_default_keyword_table_name(self, db):
        orders = db.table(Order)
        assert orders.name == "order"
        orders.insert_many([Order(1, "a", 10), Order(2, "b", 20)])
        assert orders.select(OrderBy(descending=True)) == [Order(2, "b", 20), Order(1, "a", 10)]
        assert orders.count_rows() == 2

    def test_keyword_columns(self, db):
        orders = db.table(Order, "order", AutoIncrement())
        orders.insert_one(Order(key="a", end=10))
        orders.insert_one(Order(key="b", end=20))

        assert orders.partial_select("key, end", OrderBy(column="end", descending=True)) == [
            Order(key="b", end=20),
            Order(key="a", end=10),
        ]
        assert orders.update_one(Order(1, "c", 30), Where('"key" = \'a\'')) == 1
        assert orders.select(Where('"end" = 30')) == [Order(1, "c", 30)]
        assert orders.delete('"key" = \'b\'') == 1
        assert orders.count_rows() == 1

    def test_keyword_field_in_own_table_name(self, db):
        trees = db.table(Tree, "inner")
        trees.insert_one(Tree(id=1))
        assert trees.select() == [Tree(id=1)]


class TestNestedRecords:
    """Tests for records nested inside fields."""

    def test_two_levels(self, db):
        trees = db.table(Tree)
        tree = Tree(1, Branch(Level(5), "top"))
        trees.insert_one(tree)
        (loaded,) = trees.select()
        assert loaded == tree
        assert isinstance(loaded.inner.level, Level)

    def test_list_and_optional_nested(self, db):
        trees = db.table(Tree)
        tree = Tree(2, leaves=[Level(1), Level(2)], corner=Point(3, 4))
        trees.insert_one(tree)
        (loaded,) = trees.select()
        assert loaded == tree
        assert all(isinstance(leaf, Level) for leaf in loaded.leaves)
        assert isinstance(loaded.corner, Point)


class TestOversizedValues:
    """Tests for values SQLite cannot store."""

    def test_insert_one(self, db):
        counters = db.table(Counter)
        with pytest.raises(BackendError, match="too large"):
            counters.insert_one(Counter(2**64))
        assert counters.count_rows() == 0

    def test_insert_many_reports_index(self, db):
        counters = db.table(Counter)
        with pytest.raises(BackendError, match="stopped at record 1"):
            counters.insert_many([Counter(1), Counter(2**64), Counter(3)])
        assert counters.select() == [Counter(1)]

    def test_update_one(self, db):
        counters = db.table(Counter)
        counters.insert_one(Counter(1))
        with pytest.raises(BackendError):
            counters.update_one(Counter(-(2**64)), "value = 1")
        assert counters.select() == [Counter(1)]
