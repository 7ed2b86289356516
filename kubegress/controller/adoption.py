"""Adoption resolver: does this controller own a given ingress?

Pure functions only.  Explicit ``spec.ingressClassName`` wins; class-less
ingresses are adopted through exactly one default IngressClass owned by this
controller.  More than one such default is reported as an error instead of
picking one.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from kubegress.models.errors import AmbiguousDefaultClassError

DEFAULT_CLASS_ANNOTATION = "ingressclass.kubernetes.io/is-default-class"


@dataclass(frozen=True)
class IngressClassView:
    """The parts of an IngressClass the resolver looks at."""

    name: str
    controller: str
    is_default: bool = False

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> IngressClassView:
        metadata = obj.get("metadata") or {}
        annotations = metadata.get("annotations") or {}
        return cls(
            name=str(metadata.get("name") or ""),
            controller=str((obj.get("spec") or {}).get("controller") or ""),
            is_default=str(annotations.get(DEFAULT_CLASS_ANNOTATION, "")).lower() == "true",
        )


@dataclass(frozen=True)
class AdoptionDecision:
    adopted: bool
    class_name: str | None
    reason: str


def ingress_class_name(ingress: dict[str, Any]) -> str | None:
    """Return the explicitly declared class name, or None."""
    return (ingress.get("spec") or {}).get("ingressClassName") or None


def resolve_adoption(
    class_name: str | None,
    classes: Iterable[IngressClassView],
    controller_name: str,
) -> AdoptionDecision:
    """Decide whether an ingress declaring *class_name* belongs to *controller_name*.

    Raises:
        AmbiguousDefaultClassError: *class_name* is None and more than one
            default class is owned by *controller_name*.
    """
    known = list(classes)

    if class_name is not None:
        match = next((c for c in known if c.name == class_name), None)
        if match is None:
            return AdoptionDecision(False, class_name, f"ingress class {class_name} not found")
        if match.controller != controller_name:
            return AdoptionDecision(False, class_name, f"ingress class {class_name} is managed by {match.controller}")
        return AdoptionDecision(True, class_name, f"ingress class {class_name} is managed by this controller")

    defaults = [c for c in known if c.is_default and c.controller == controller_name]
    if not defaults:
        return AdoptionDecision(False, None, "no ingress class and no default class for this controller")
    if len(defaults) > 1:
        raise AmbiguousDefaultClassError([c.name for c in defaults])
    return AdoptionDecision(True, defaults[0].name, f"default ingress class {defaults[0].name}")


def affected_by_class(ingress: dict[str, Any], changed_class: str) -> bool:
    """True when a change to *changed_class* can alter the ingress's adoption."""
    name = ingress_class_name(ingress)
    return name is None or name == changed_class
