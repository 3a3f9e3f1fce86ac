"""
List filters produced by the permission handlers.

A FilterPredicate is a union of Scopes. Each Scope is a conjunction of store
conditions, optionally resolved through a related collection: the related
records matching the relation's own predicate are listed first and the scope
then becomes `field in <their ids>`. Only equality, array-contains and in-set
conditions are ever sent to the store.
"""

from typing import Any, Dict, List, Optional, Sequence
from pydantic import BaseModel, Field

from uncip_backend.interface.base import ResourceType
from uncip_backend.store.base import Condition, FilterOp, matches_all


class Relation(BaseModel):
    resource_type: ResourceType
    field: str
    predicate: "FilterPredicate"


class Scope(BaseModel):
    conditions: List[Condition] = Field(default_factory=list)
    through: Optional[Relation] = None

    @property
    def unrestricted(self) -> bool:
        return not self.conditions and self.through is None

    def matches_locally(self, document: Dict[str, Any]) -> bool:
        return matches_all(document, self.conditions)

    def narrowed(self, conditions: Sequence[Condition]) -> "Scope":
        return Scope(conditions=[*self.conditions, *conditions], through=self.through)


class FilterPredicate(BaseModel):
    scopes: List[Scope] = Field(default_factory=list)

    @classmethod
    def everything(cls) -> "FilterPredicate":
        return cls(scopes=[Scope()])

    @classmethod
    def nothing(cls) -> "FilterPredicate":
        return cls(scopes=[])

    @classmethod
    def where(cls, *conditions: Condition) -> "FilterPredicate":
        return cls(scopes=[Scope(conditions=list(conditions))])

    @property
    def matches_nothing(self) -> bool:
        return not self.scopes

    @property
    def matches_everything(self) -> bool:
        return any(scope.unrestricted for scope in self.scopes)

    def union(self, other: "FilterPredicate") -> "FilterPredicate":
        if self.matches_everything or other.matches_everything:
            return FilterPredicate.everything()
        return FilterPredicate(scopes=[*self.scopes, *other.scopes])

    def narrow(self, conditions: Sequence[Condition]) -> "FilterPredicate":
        """Add conditions to every scope, keeping the union shape"""
        if not conditions:
            return self
        return FilterPredicate(scopes=[scope.narrowed(conditions) for scope in self.scopes])


Relation.model_rebuild()


class UserQueryBuilder:
    """Filters over the users collection"""

    @classmethod
    def self_only(cls, actor_id: str) -> FilterPredicate:
        return FilterPredicate.where(Condition(field="id", op=FilterOp.EQ, value=actor_id))


class ChildQueryBuilder:
    """Filters over the children collection"""

    @classmethod
    def guardian_scope(cls, actor_id: str) -> Scope:
        return Scope(conditions=[Condition(field="guardians", op=FilterOp.ARRAY_CONTAINS, value=actor_id)])

    @classmethod
    def school_scope(cls, school_id: Optional[str]) -> Optional[Scope]:
        # A school account without a school sees nothing through this rule
        if not school_id:
            return None
        return Scope(conditions=[Condition(field="school_id", op=FilterOp.EQ, value=school_id)])


class AlertQueryBuilder:
    """Filters over the alerts collection"""

    @classmethod
    def through_children(cls, child_predicate: FilterPredicate) -> FilterPredicate:
        if child_predicate.matches_nothing:
            return FilterPredicate.nothing()
        relation = Relation(resource_type=ResourceType.CHILD, field="child_id", predicate=child_predicate)
        return FilterPredicate(scopes=[Scope(through=relation)])
