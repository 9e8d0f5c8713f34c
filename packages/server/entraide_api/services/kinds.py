"""Registry of offerable resource kinds.

Materiel, outils and transport share one code path; everything that differs
between them (tables, offering foreign key, labels, photo prefix) lives here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Type

from sqlmodel import SQLModel

from entraide_api.models.offerings import MaterielOffering, OutilOffering, TransportOffering
from entraide_api.models.resources import Materiel, Outil, Transport
from entraide_shared.schemas.common import ResourceKind


@dataclass(frozen=True)
class ResourceKindSpec:
    kind: ResourceKind
    model: Type[SQLModel]
    offering_model: Type[SQLModel]
    offering_fk: str
    label: str
    photo_prefix: str

    @property
    def entity(self) -> str:
        return self.kind.value

    def offering_resource_column(self):
        return getattr(self.offering_model, self.offering_fk)


RESOURCE_KINDS: dict[ResourceKind, ResourceKindSpec] = {
    ResourceKind.MATERIEL: ResourceKindSpec(
        kind=ResourceKind.MATERIEL,
        model=Materiel,
        offering_model=MaterielOffering,
        offering_fk="materiel_id",
        label="Materiel",
        photo_prefix="materiel-photos",
    ),
    ResourceKind.OUTIL: ResourceKindSpec(
        kind=ResourceKind.OUTIL,
        model=Outil,
        offering_model=OutilOffering,
        offering_fk="outil_id",
        label="Tool",
        photo_prefix="outil-photos",
    ),
    ResourceKind.TRANSPORT: ResourceKindSpec(
        kind=ResourceKind.TRANSPORT,
        model=Transport,
        offering_model=TransportOffering,
        offering_fk="transport_id",
        label="Transport",
        photo_prefix="transport-photos",
    ),
}

