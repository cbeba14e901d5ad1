"""
Compatibility Checker - which plants may share a zone, and which zones a plant tolerates.
"""

from typing import Iterable

from garden_optimizer.models import Plant, Zone


class CompatibilityChecker:
    """
    Pairwise plant compatibility and zone/plant sunlight rules.

    Only explicit incompatibility blocks co-location; not being listed as a
    companion is neutral. Exclusion is symmetric: if either plant lists the
    other's type, neither may join the other.
    """

    def plants_compatible(self, a: Plant, b: Plant) -> bool:
        return b.type not in a.incompatible_plants and a.type not in b.incompatible_plants

    def compatible_with_all(self, plant: Plant, placed: Iterable[Plant]) -> bool:
        return all(self.plants_compatible(plant, other) for other in placed)

    def are_companions(self, a: Plant, b: Plant) -> bool:
        """True if either plant declares the other's type as a companion."""
        return b.type in a.companion_plants or a.type in b.companion_plants

    def has_companion(self, plant: Plant, placed: Iterable[Plant]) -> bool:
        return any(self.are_companions(plant, other) for other in placed)

    def zone_accepts(self, zone: Zone, plant: Plant) -> bool:
        """
        A zone accepts a plant if it offers at least as much light as needed.

        Shade-tolerant plants survive in brighter zones; sun lovers never go
        into a zone darker than they need.
        """
        return zone.sunlight_condition.hours >= plant.sunlight_needs.hours
