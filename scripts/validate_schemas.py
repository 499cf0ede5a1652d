"""Checks every request schema and prints the names the server will load."""

from bidserver.validation.validator import get_schema_registry


def validate() -> None:
    registry = get_schema_registry()
    for name in registry.names():
        print(name)


if __name__ == "__main__":
    validate()
