"""
Block type registry for Blockwright.

The registry maps each block type identifier to its descriptor. It is an
ordinary object built once at startup and handed to the composition engine,
so every type is known before the first document operation is served.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Union

from ..errors import TypeNotRegisteredError
from ..models import BlockCategory, BlockTypeId
from .descriptor import TypeDescriptor


@dataclass
class RegistrationCheck:
    """
    Result of checking that a set of block types is registered.
    """
    ok: bool
    missing: List[Union[BlockTypeId, str]] = field(default_factory=list)


class TypeRegistry:
    """
    Registry of block type descriptors.
    """

    def __init__(self, descriptors: Optional[Iterable[TypeDescriptor]] = None):
        """
        Initialize the registry.

        Args:
            descriptors: Optional descriptors to register immediately
        """
        self._descriptors: Dict[BlockTypeId, TypeDescriptor] = {}
        self.overwrite_count = 0
        for descriptor in descriptors or ():
            self.register(descriptor)

    def register(self, descriptor: TypeDescriptor) -> None:
        """
        Register a block type descriptor.

        Registering an id a second time replaces the earlier descriptor and
        logs a warning.

        Args:
            descriptor: The descriptor to register
        """
        type_id = BlockTypeId(descriptor.id)
        if type_id in self._descriptors:
            self.overwrite_count += 1
            logging.warning(f"Block type {type_id} is already registered. Overwriting...")
        self._descriptors[type_id] = descriptor

    def get(self, type_id) -> Optional[TypeDescriptor]:
        """
        Get a descriptor by type id.

        Args:
            type_id: The block type id (enum member or its string value)

        Returns:
            The descriptor, or None if the type is unknown or unregistered
        """
        try:
            return self._descriptors.get(BlockTypeId(type_id))
        except ValueError:
            return None

    def require(self, type_id) -> TypeDescriptor:
        """
        Get a descriptor by type id, raising if it is not registered.

        Raises:
            TypeNotRegisteredError: If the type has no descriptor
        """
        descriptor = self.get(type_id)
        if descriptor is None:
            raise TypeNotRegisteredError(type_id)
        return descriptor

    def has(self, type_id) -> bool:
        return self.get(type_id) is not None

    def list(self) -> Set[BlockTypeId]:
        """
        Get the set of registered block type ids.

        Returns:
            Set of registered ids
        """
        return set(self._descriptors)

    def all_registered(self, required_ids: Iterable[BlockTypeId]) -> RegistrationCheck:
        """
        Check that every required block type has been registered.

        Ids that are not block types at all are reported as given.

        Args:
            required_ids: The ids expected to be present

        Returns:
            RegistrationCheck with the missing ids in the order given
        """
        missing: List[Union[BlockTypeId, str]] = []
        for type_id in required_ids:
            if self.has(type_id):
                continue
            try:
                missing.append(BlockTypeId(type_id))
            except ValueError:
                missing.append(type_id)
        return RegistrationCheck(ok=not missing, missing=missing)

    def by_category(self) -> Dict[BlockCategory, List[TypeDescriptor]]:
        """
        Group registered descriptors by display category.

        Returns:
            Mapping of every category (possibly empty) to its descriptors
        """
        groups: Dict[BlockCategory, List[TypeDescriptor]] = {category: [] for category in BlockCategory}
        for descriptor in self._descriptors.values():
            groups[descriptor.category].append(descriptor)
        return groups

    def display_name(self, type_id) -> str:
        descriptor = self.get(type_id)
        return descriptor.display_name if descriptor else str(type_id)

    def can_add(self, type_id, existing_types: Iterable[BlockTypeId]) -> bool:
        """
        Check whether one more block of ``type_id`` fits next to ``existing_types``.

        Raises:
            TypeNotRegisteredError: If the type has no descriptor
        """
        descriptor = self.require(type_id)
        if descriptor.max_instances is None:
            return True
        count = sum(1 for existing in existing_types if existing == descriptor.id)
        return count < descriptor.max_instances

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, type_id) -> bool:
        return self.has(type_id)
