from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from app.adapters.functions_client import FunctionInvokeError
from app.adapters.shipping import ShippingCalculator
from app.models.cart_line import CartLine
from app.services.exceptions import ShippingUnavailable
from app.utils.log import get_logger
from app.utils.money import split_evenly

log = get_logger("shipping")


@dataclass
class ShippingGroup:
    """Lines of one destination class that ship together from one pharmacy at one speed."""

    pharmacy_id: Optional[str]
    shipping_speed: str
    line_ids: List[str] = field(default_factory=list)
    shipping_cost: Decimal = Decimal("0.00")


def partition_lines(lines: Sequence[CartLine]) -> Tuple[List[CartLine], List[CartLine]]:
    """Split cart lines into (ship-to-practice, ship-to-patient)."""
    practice_lines = [l for l in lines if not l.patient_id]
    patient_lines = [l for l in lines if l.patient_id]
    return practice_lines, patient_lines


def group_lines(lines: Sequence[CartLine]) -> List[ShippingGroup]:
    groups: Dict[Tuple[Optional[str], str], ShippingGroup] = {}
    for line in lines:
        key = (line.assigned_pharmacy_id, line.shipping_speed)
        if key not in groups:
            groups[key] = ShippingGroup(
                pharmacy_id=line.assigned_pharmacy_id, shipping_speed=line.shipping_speed
            )
        groups[key].line_ids.append(line.id)
    return list(groups.values())


def allocate_shipping(groups: Sequence[ShippingGroup]) -> Dict[str, Decimal]:
    """
    Per-line share of each group's cost: an even split, whatever the line's price
    or quantity. Shares are whole cents and add up to the group cost.
    """
    allocation = {}
    for g in groups:
        for line_id, share in zip(g.line_ids, split_evenly(g.shipping_cost, len(g.line_ids))):
            allocation[line_id] = share
    return allocation


class ShippingPricer:
    def __init__(self, calculator: ShippingCalculator):
        self.calculator = calculator

    def price(self, groups: Sequence[ShippingGroup]):
        """
        Fetch the cost of every group, one call per group. Any group without a cost
        aborts the checkout: shipping never silently defaults to zero.
        """
        for g in groups:
            try:
                cost = self.calculator.calculate(g.pharmacy_id, g.shipping_speed)
            except FunctionInvokeError as e:
                log.error(
                    f"calculate-shipping failed pharmacy={g.pharmacy_id} speed={g.shipping_speed}: {e}"
                )
                raise ShippingUnavailable(g.shipping_speed) from e
            if cost is None:
                log.error(
                    f"calculate-shipping returned no cost pharmacy={g.pharmacy_id} speed={g.shipping_speed}"
                )
                raise ShippingUnavailable(g.shipping_speed)
            g.shipping_cost = cost
