"""Optical link loss budget and power budget checks.

Constant tables follow TIA-568 typical/maximum values. Unknown fiber type,
wavelength or connector combinations contribute 0 dB rather than raising.
"""

from __future__ import annotations

from dataclasses import dataclass

from ospnet.models.network import SPLITTER_INSERTION_LOSS_DB, FiberType

# Maximum attenuation, dB/km
FIBER_ATTENUATION: dict[FiberType, dict[int, float]] = {
    FiberType.singlemode: {1310: 0.5, 1550: 0.4},
    FiberType.multimode: {850: 3.5, 1300: 1.5},
}

# Typical attenuation of modern fiber, dB/km
FIBER_ATTENUATION_TYPICAL: dict[FiberType, dict[int, float]] = {
    FiberType.singlemode: {1310: 0.35, 1550: 0.25},
    FiberType.multimode: {850: 2.5, 1300: 0.8},
}

WAVELENGTH_OPTIONS: dict[FiberType, list[int]] = {
    fiber_type: sorted(table) for fiber_type, table in FIBER_ATTENUATION.items()
}

FUSION_SPLICE_LOSS = {"typical": 0.1, "max": 0.3}
MECHANICAL_SPLICE_LOSS = {"typical": 0.3, "max": 0.5}

CONNECTOR_LOSS: dict[str, dict[str, float]] = {
    "LC": {"typical": 0.2, "max": 0.5},
    "SC": {"typical": 0.25, "max": 0.5},
    "FC": {"typical": 0.25, "max": 0.5},
    "ST": {"typical": 0.3, "max": 0.5},
    "MPO": {"typical": 0.35, "max": 0.75},
    "MTP": {"typical": 0.35, "max": 0.75},
}
CONNECTOR_TYPES = list(CONNECTOR_LOSS)

MACROBEND_LOSS_DB = 0.1
PATCH_PANEL_LOSS_DB = 0.3
SPLITTER_LOSS_DB = {ratio.value: loss for ratio, loss in SPLITTER_INSERTION_LOSS_DB.items()}

# Optical power budget per equipment class, dB
POWER_BUDGETS: dict[str, float] = {
    "gpon_classB": 28,
    "gpon_classBplus": 28,
    "gpon_classC": 30,
    "gpon_classCplus": 32,
    "xgspon_n1": 29,
    "xgspon_n2": 31,
    "gigabit_sx": 7.5,
    "gigabit_lx": 11,
    "gigabit_zx": 23,
    "ten_gig_sr": 6.5,
    "ten_gig_lr": 9.4,
    "ten_gig_er": 15.6,
}


@dataclass
class LossBudgetParams:
    fiber_type: FiberType = FiberType.singlemode
    wavelength_nm: int = 1310
    distance_km: float = 0.0
    fusion_splice_count: int = 0
    mechanical_splice_count: int = 0
    connector_pair_count: int = 0
    connector_type: str = "LC"
    use_max_values: bool = False
    margin_db: float = 0.0


@dataclass
class LossBudgetBreakdown:
    fiber_loss: float = 0.0
    fusion_loss: float = 0.0
    mechanical_loss: float = 0.0
    connector_loss: float = 0.0
    margin_loss: float = 0.0
    total_loss: float = 0.0
    fiber_attenuation: float = 0.0
    fusion_value: float = 0.0
    mechanical_value: float = 0.0
    connector_value: float = 0.0


@dataclass(frozen=True)
class PowerBudgetCheck:
    passed: bool
    margin_db: float
    budget_db: float


def wavelength_options(fiber_type: FiberType) -> list[int]:
    return list(WAVELENGTH_OPTIONS.get(fiber_type, []))


def fiber_attenuation(fiber_type: FiberType, wavelength_nm: int) -> float:
    return FIBER_ATTENUATION.get(fiber_type, {}).get(wavelength_nm, 0.0)


def calculate_budget(params: LossBudgetParams) -> LossBudgetBreakdown:
    """Sum fiber, splice, connector and margin losses for a link.

    Each component is rounded to 2 decimals and the total is the rounded sum
    of the rounded components. Negative counts or distances yield a zeroed
    breakdown.
    """
    numeric = (
        params.distance_km,
        params.fusion_splice_count,
        params.mechanical_splice_count,
        params.connector_pair_count,
        params.margin_db,
    )
    if any(value < 0 for value in numeric):
        return LossBudgetBreakdown()

    level = "max" if params.use_max_values else "typical"
    attenuation = fiber_attenuation(params.fiber_type, params.wavelength_nm)
    fusion_value = FUSION_SPLICE_LOSS[level]
    mechanical_value = MECHANICAL_SPLICE_LOSS[level]
    connector_value = CONNECTOR_LOSS.get(params.connector_type, {}).get(level, 0.0)

    breakdown = LossBudgetBreakdown(
        fiber_loss=round(params.distance_km * attenuation, 2),
        fusion_loss=round(params.fusion_splice_count * fusion_value, 2),
        mechanical_loss=round(params.mechanical_splice_count * mechanical_value, 2),
        connector_loss=round(params.connector_pair_count * connector_value, 2),
        margin_loss=round(params.margin_db, 2),
        fiber_attenuation=attenuation,
        fusion_value=fusion_value,
        mechanical_value=mechanical_value,
        connector_value=connector_value,
    )
    breakdown.total_loss = round(
        breakdown.fiber_loss
        + breakdown.fusion_loss
        + breakdown.mechanical_loss
        + breakdown.connector_loss
        + breakdown.margin_loss,
        2,
    )
    return breakdown


def check_power_budget(total_loss: float, equipment_class: str) -> PowerBudgetCheck | None:
    """Compare a link loss to an equipment class budget; ``None`` for unknown classes."""
    budget = POWER_BUDGETS.get(equipment_class)
    if budget is None:
        return None
    margin = budget - total_loss
    return PowerBudgetCheck(passed=margin >= 0, margin_db=round(margin, 2), budget_db=float(budget))
