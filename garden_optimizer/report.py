"""
Tabular views of a computed layout, for printing and export.
"""

from typing import List

import pandas as pd

from garden_optimizer.models import Layout, UnplacedPlant

PLACEMENT_COLUMNS = ["zone_id", "plant_id", "plant_type", "growth_stage", "footprint"]
ZONE_COLUMNS = ["zone_id", "sunlight", "area", "used_area", "utilization_pct", "plant_count"]
UNPLACED_COLUMNS = ["plant_id", "plant_type", "footprint", "reason"]


def layout_frame(layout: Layout) -> pd.DataFrame:
    """One row per placed plant, in zone order then placement order."""
    rows = [
        {
            "zone_id": p.zone_id,
            "plant_id": p.plant.id,
            "plant_type": p.plant.type,
            "growth_stage": p.plant.growth_stage,
            "footprint": round(p.footprint, 4),
        }
        for p in layout.placements
    ]
    return pd.DataFrame(rows, columns=PLACEMENT_COLUMNS)


def zone_summary_frame(layout: Layout) -> pd.DataFrame:
    """One row per zone, including skipped zones."""
    rows = []
    for zone in layout.zones:
        rows.append({
            "zone_id": zone.zone_id,
            "sunlight": zone.sunlight_condition.value,
            "area": zone.area,
            "used_area": round(zone.used_area, 4),
            "utilization_pct": round(min(100.0, zone.used_area / zone.area * 100), 2) if zone.area > 0 else 0.0,
            "plant_count": len(zone.placements),
        })
    return pd.DataFrame(rows, columns=ZONE_COLUMNS)


def unplaced_frame(unplaced: List[UnplacedPlant]) -> pd.DataFrame:
    return pd.DataFrame([u.to_dict() for u in unplaced], columns=UNPLACED_COLUMNS)
