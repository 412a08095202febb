"""Example usage of the typed_sqlite library."""

from dataclasses import dataclass
from pathlib import Path

from typed_sqlite import AutoIncrement, Db, Distinct, OrderBy, Where


# Define a record type; columns follow the field order
@dataclass
class Person:
    id: int = 0
    name: str = ""
    age: int = 0
    favourite_animal: str = ""


# Create a database file for storage
db_path = Path("./example_data.db")

with Db.open(db_path) as db:
    # id is assigned by the database when left at 0
    persons = db.table(Person, "persons", AutoIncrement())

    people = [
        Person(name="Alice", age=30, favourite_animal="dog"),
        Person(name="Bob", age=25, favourite_animal="cat"),
        Person(name="Charlie", age=35, favourite_animal="dog"),
        Person(name="Diana", age=28, favourite_animal="owl"),
        Person(name="Eve", age=22, favourite_animal="dog"),
    ]

    print("Inserting Person records...")
    persons.insert_many(people)
    print(f"Table '{persons.name}' now holds {persons.count_rows()} rows")

    print("\nDog people, oldest first:")
    for person in persons.select(Where("favourite_animal = 'dog'") + OrderBy(column="age", descending=True)):
        print(f"  {person.id}: {person.name} ({person.age})")

    print("\nDistinct favourite animals:")
    for person in persons.partial_select(["favourite_animal"], Distinct() + OrderBy()):
        print(f"  {person.favourite_animal}")

    print("\nBirthday for Bob:")
    bob = persons.select(Where("name = 'Bob'"))[0]
    bob.age += 1
    persons.update_one(bob, Where(f"id = {bob.id}"))
    print(f"  {persons.select(Where(f'id = {bob.id}'))[0]}")

    print("\nRemoving everyone under 25...")
    removed = persons.delete(Where("age < 25"))
    print(f"  removed {removed}, {persons.count_rows()} left")
