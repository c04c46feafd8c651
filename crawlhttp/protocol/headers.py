"""Case-insensitive, ordered header multimap."""

from collections.abc import Iterable, Iterator, Mapping


class HeaderStore:
    """Ordered multimap from lowercased header name to its values.

    Names are compared case-insensitively. Insertion order is preserved both
    across names and among the values of a single name, so repeated headers
    such as ``Set-Cookie`` keep the order the server sent them in.
    """

    def __init__(
        self,
        initial: Mapping[str, str | Iterable[str]] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            initial: Optional mapping of names to a value or list of values.
        """
        self._values: dict[str, list[str]] = {}
        if initial:
            for name, value in initial.items():
                if isinstance(value, str):
                    self.add(name, value)
                else:
                    for item in value:
                        self.add(name, item)

    @staticmethod
    def _key(name: str) -> str:
        return name.lower()

    def add(self, name: str, value: str) -> None:
        """Append a value for a header, keeping existing values.

        Args:
            name: Header name (any case).
            value: Header value.
        """
        self._values.setdefault(self._key(name), []).append(value)

    def set(self, name: str, value: str) -> None:
        """Replace all values of a header with a single value.

        Args:
            name: Header name (any case).
            value: Header value.
        """
        self._values[self._key(name)] = [value]

    def get_first(self, name: str, default: str | None = None) -> str | None:
        """Get the first value of a header.

        Args:
            name: Header name (any case).
            default: Value returned when the header is absent.

        Returns:
            First value, or default.
        """
        values = self._values.get(self._key(name))
        if not values:
            return default
        return values[0]

    def get_all(self, name: str) -> list[str]:
        """Get every value of a header in arrival order.

        Args:
            name: Header name (any case).

        Returns:
            List of values (empty if absent).
        """
        return list(self._values.get(self._key(name), []))

    def merge(self, other: "HeaderStore") -> None:
        """Append every value of another store to this one.

        Args:
            other: Store whose values are appended.
        """
        for name, values in other.items():
            for value in values:
                self.add(name, value)

    def items(self) -> Iterator[tuple[str, list[str]]]:
        """Iterate over (lowercased name, values) pairs."""
        for name, values in self._values.items():
            yield name, list(values)

    def to_dict(self) -> dict[str, str]:
        """Flatten to a name -> first value dictionary."""
        return {name: values[0] for name, values in self._values.items() if values}

    def to_multidict(self) -> dict[str, list[str]]:
        """Copy to a name -> values dictionary."""
        return {name: list(values) for name, values in self._values.items()}

    def copy(self) -> "HeaderStore":
        """Return an independent copy of the store."""
        return HeaderStore(self.to_multidict())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderStore):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"HeaderStore({self._values!r})"
