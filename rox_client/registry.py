"""Lookup table of the descriptors attached to each test."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from rox_client.models.annotation import Annotation


@dataclass(kw_only=True)
class AnnotationRegistry:
    """Maps test identifiers to their declarative descriptors.

    The binding for a test framework fills the registry; the accumulator only
    reads it.
    """

    annotations: dict[str, list[Annotation]] = field(default_factory=dict)

    def register(self, test_id: str, annotation: Annotation) -> None:
        self.annotations.setdefault(test_id, []).append(annotation)

    def annotations_for(self, test_id: str) -> Sequence[Annotation]:
        return tuple(self.annotations.get(test_id, ()))
